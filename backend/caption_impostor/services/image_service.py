"""
Image catalog and real/fake pair selection
"""

import random
from typing import Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from caption_impostor.core.config import settings
from caption_impostor.core.errors import DataIntegrityError
from caption_impostor.models.image_title import ImageTitle

# Seed catalog: five images in each of six categories
SAMPLE_IMAGES = [
    # Animals
    {"category": "Animals", "title": "Cute Cat", "file_name": "cat1.jpg", "file_path": "https://picsum.photos/500/500?random=1"},
    {"category": "Animals", "title": "Happy Dog", "file_name": "dog1.jpg", "file_path": "https://picsum.photos/500/500?random=2"},
    {"category": "Animals", "title": "Wild Lion", "file_name": "lion1.jpg", "file_path": "https://picsum.photos/500/500?random=3"},
    {"category": "Animals", "title": "Funny Monkey", "file_name": "monkey1.jpg", "file_path": "https://picsum.photos/500/500?random=4"},
    {"category": "Animals", "title": "Colorful Bird", "file_name": "bird1.jpg", "file_path": "https://picsum.photos/500/500?random=5"},
    # Nature
    {"category": "Nature", "title": "Beautiful Sunset", "file_name": "sunset1.jpg", "file_path": "https://picsum.photos/500/500?random=6"},
    {"category": "Nature", "title": "Mountain View", "file_name": "mountain1.jpg", "file_path": "https://picsum.photos/500/500?random=7"},
    {"category": "Nature", "title": "Ocean Waves", "file_name": "ocean1.jpg", "file_path": "https://picsum.photos/500/500?random=8"},
    {"category": "Nature", "title": "Forest Path", "file_name": "forest1.jpg", "file_path": "https://picsum.photos/500/500?random=9"},
    {"category": "Nature", "title": "Desert Landscape", "file_name": "desert1.jpg", "file_path": "https://picsum.photos/500/500?random=10"},
    # Food
    {"category": "Food", "title": "Delicious Pizza", "file_name": "pizza1.jpg", "file_path": "https://picsum.photos/500/500?random=11"},
    {"category": "Food", "title": "Fresh Salad", "file_name": "salad1.jpg", "file_path": "https://picsum.photos/500/500?random=12"},
    {"category": "Food", "title": "Chocolate Cake", "file_name": "cake1.jpg", "file_path": "https://picsum.photos/500/500?random=13"},
    {"category": "Food", "title": "Grilled Burger", "file_name": "burger1.jpg", "file_path": "https://picsum.photos/500/500?random=14"},
    {"category": "Food", "title": "Ice Cream Sundae", "file_name": "icecream1.jpg", "file_path": "https://picsum.photos/500/500?random=15"},
    # Technology
    {"category": "Technology", "title": "Modern Laptop", "file_name": "laptop1.jpg", "file_path": "https://picsum.photos/500/500?random=16"},
    {"category": "Technology", "title": "Smartphone", "file_name": "phone1.jpg", "file_path": "https://picsum.photos/500/500?random=17"},
    {"category": "Technology", "title": "Gaming Console", "file_name": "console1.jpg", "file_path": "https://picsum.photos/500/500?random=18"},
    {"category": "Technology", "title": "Robot Assistant", "file_name": "robot1.jpg", "file_path": "https://picsum.photos/500/500?random=19"},
    {"category": "Technology", "title": "Virtual Reality", "file_name": "vr1.jpg", "file_path": "https://picsum.photos/500/500?random=20"},
    # Sports
    {"category": "Sports", "title": "Soccer Ball", "file_name": "soccer1.jpg", "file_path": "https://picsum.photos/500/500?random=21"},
    {"category": "Sports", "title": "Basketball Game", "file_name": "basketball1.jpg", "file_path": "https://picsum.photos/500/500?random=22"},
    {"category": "Sports", "title": "Tennis Match", "file_name": "tennis1.jpg", "file_path": "https://picsum.photos/500/500?random=23"},
    {"category": "Sports", "title": "Swimming Pool", "file_name": "swimming1.jpg", "file_path": "https://picsum.photos/500/500?random=24"},
    {"category": "Sports", "title": "Mountain Climbing", "file_name": "climbing1.jpg", "file_path": "https://picsum.photos/500/500?random=25"},
    # Art
    {"category": "Art", "title": "Abstract Painting", "file_name": "abstract1.jpg", "file_path": "https://picsum.photos/500/500?random=26"},
    {"category": "Art", "title": "Classical Sculpture", "file_name": "sculpture1.jpg", "file_path": "https://picsum.photos/500/500?random=27"},
    {"category": "Art", "title": "Street Graffiti", "file_name": "graffiti1.jpg", "file_path": "https://picsum.photos/500/500?random=28"},
    {"category": "Art", "title": "Digital Art", "file_name": "digital1.jpg", "file_path": "https://picsum.photos/500/500?random=29"},
    {"category": "Art", "title": "Photography", "file_name": "photo1.jpg", "file_path": "https://picsum.photos/500/500?random=30"},
]


def select_image_pairs(
    images: List[ImageTitle],
    rounds: int,
    max_attempts: int = 100,
    rng: random.Random = random,
) -> List[Tuple[ImageTitle, ImageTitle]]:
    """Pick one (real, fake) pair per round.

    Each pair shares a category and no image is used twice in a game. For each
    round a random unused image is drawn and a same-category counterpart is
    searched for among the remaining unused images; a round that finds no pair
    within ``max_attempts`` draws fails the whole selection.
    """
    valid_images = [img for img in images if img.file_path and img.file_path.strip()]
    if len(valid_images) < rounds * 2:
        raise DataIntegrityError(
            f"Not enough valid images for {rounds} rounds: {len(valid_images)}/{rounds * 2}"
        )

    pairs = []
    used_ids = set()

    for round_number in range(1, rounds + 1):
        pair = None
        attempts = 0
        while pair is None and attempts < max_attempts:
            attempts += 1
            available = [img for img in valid_images if img.id not in used_ids]
            if len(available) < 2:
                raise DataIntegrityError(f"Not enough available images for round {round_number}")

            candidate = rng.choice(available)
            same_category = [
                img for img in available
                if img.category == candidate.category and img.id != candidate.id
            ]
            if same_category:
                pair = (candidate, rng.choice(same_category))

        if pair is None:
            raise DataIntegrityError(
                f"Could not find a valid image pair for round {round_number} after {max_attempts} attempts"
            )

        used_ids.add(pair[0].id)
        used_ids.add(pair[1].id)
        pairs.append(pair)

    return pairs


class ImageService:
    """Image catalog access"""

    def __init__(self, db: Session):
        self.db = db

    def valid_images(self) -> List[ImageTitle]:
        """Catalog entries with a usable file path"""
        images = self.db.query(ImageTitle).filter(
            ImageTitle.file_path.isnot(None),
            ImageTitle.file_path != ""
        ).all()
        return [img for img in images if img.file_path.strip()]

    def select_pairs_for_game(self, rng: random.Random = random) -> List[Tuple[ImageTitle, ImageTitle]]:
        return select_image_pairs(
            self.valid_images(),
            settings.TOTAL_ROUNDS,
            max_attempts=settings.IMAGE_PAIR_MAX_ATTEMPTS,
            rng=rng,
        )

    def pick_category_pair(self, rng: random.Random = random) -> Tuple[ImageTitle, ImageTitle]:
        """Two different images from one random category that has at least two"""
        by_category: Dict[str, List[ImageTitle]] = {}
        for img in self.valid_images():
            by_category.setdefault(img.category or "", []).append(img)

        categories = [name for name, imgs in by_category.items() if len(imgs) >= 2]
        if not categories:
            raise DataIntegrityError("No image category has enough images")

        category = rng.choice(categories)
        real_image, fake_image = rng.sample(by_category[category], 2)
        return real_image, fake_image

    def find_by_path(self, file_path: Optional[str]) -> Optional[ImageTitle]:
        if not file_path:
            return None
        return self.db.query(ImageTitle).filter(ImageTitle.file_path == file_path).first()

    def populate_sample_images(self) -> dict:
        """Seed the catalog when it is empty"""
        existing = self.db.query(ImageTitle).count()
        if existing > 0:
            return {
                "inserted": 0,
                "count": existing,
                "message": "Images already exist in database",
            }

        for data in SAMPLE_IMAGES:
            self.db.add(ImageTitle(**data))
        self.db.commit()

        categories = sorted({data["category"] for data in SAMPLE_IMAGES})
        print(f"✅ Seeded {len(SAMPLE_IMAGES)} sample images across {len(categories)} categories")
        return {
            "inserted": len(SAMPLE_IMAGES),
            "count": len(SAMPLE_IMAGES),
            "categories": categories,
            "message": "Sample images populated successfully",
        }
