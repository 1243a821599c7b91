"""Tests for image pair selection and the sample catalog."""

import random

import pytest

from caption_impostor.core.errors import DataIntegrityError
from caption_impostor.models.image_title import ImageTitle
from caption_impostor.services.image_service import SAMPLE_IMAGES, ImageService, select_image_pairs


def _catalog():
    return [ImageTitle(id=index, **data) for index, data in enumerate(SAMPLE_IMAGES, start=1)]


def test_six_rounds_use_twelve_distinct_same_category_images():
    pairs = select_image_pairs(_catalog(), 6, rng=random.Random(7))

    assert len(pairs) == 6
    used = [img.id for pair in pairs for img in pair]
    assert len(set(used)) == 12
    for real_image, fake_image in pairs:
        assert real_image.category == fake_image.category
        assert real_image.id != fake_image.id


def test_too_few_valid_images_fails():
    images = _catalog()[:11]
    with pytest.raises(DataIntegrityError):
        select_image_pairs(images, 6)


def test_blank_paths_are_not_valid():
    images = _catalog()
    for img in images[:20]:
        img.file_path = "  "
    with pytest.raises(DataIntegrityError):
        select_image_pairs(images, 6)


def test_no_same_category_partner_exhausts_attempts():
    images = [
        ImageTitle(id=index, file_path=f"img-{index}.jpg", category=f"cat-{index}")
        for index in range(1, 13)
    ]
    with pytest.raises(DataIntegrityError):
        select_image_pairs(images, 6, max_attempts=5)


def test_populate_only_seeds_an_empty_catalog(db):
    result = ImageService(db).populate_sample_images()
    assert result["inserted"] == 0
    assert result["count"] == len(SAMPLE_IMAGES)


def test_populate_images_endpoint(client):
    response = client.post("/api/populate-images")
    assert response.status_code == 200
    assert response.json()["count"] == 30
