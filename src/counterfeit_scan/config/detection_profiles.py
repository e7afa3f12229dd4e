"""
Detection profiles and vocabulary used by the scan evaluation services.

Both objects are immutable and are handed to the detector, matcher and
engine at construction time, so tests can substitute their own tables.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class LogoThreshold:
    """Brand-specific logo confidence requirements."""
    min_confidence: float
    low_confidence_penalty: int
    missing_penalty: int


@dataclass(frozen=True)
class ChallengeProfile:
    """Known false-positive-prone situation for a brand or category."""
    dark_device_adjustment: int = 0
    no_logo_adjustment: int = 0
    notes: str = ""


@dataclass(frozen=True)
class CounterfeitPattern:
    """
    Category-specific logical rule over vision labels.

    The pattern triggers when every term group is hit by at least one label
    (substring match, case-insensitive).
    """
    term_groups: Tuple[Tuple[str, ...], ...]
    message: str


def _freeze(table: Dict[str, Any]) -> Mapping[str, Any]:
    return MappingProxyType(dict(table))


DEFAULT_CATEGORY_BASELINES = {
    "Smartphones": 25,      # high counterfeit prevalence
    "Tablets": 25,
    "Laptops": 20,
    "Watches": 30,
    "Smart Watches": 25,
    "Shoes": 25,
    "Sneakers": 30,
    "Handbags": 35,
    "Sunglasses": 25,
    "Eyeglasses": 20,
    "Eyewear": 20,
    "Headphones": 20,
    "Earbuds": 20,
    "Perfumes": 30,
    "Cosmetics": 25,
    "Clothing": 20,
    "Jackets": 20,
    "Books": 10,
    "Other": 15,
}

DEFAULT_LOGO_THRESHOLDS = {
    "Apple": LogoThreshold(0.7, 30, 40),
    "Nike": LogoThreshold(0.75, 35, 35),
    "Adidas": LogoThreshold(0.75, 35, 35),
    "Gucci": LogoThreshold(0.8, 40, 45),
    "Louis Vuitton": LogoThreshold(0.8, 40, 45),
    "Rolex": LogoThreshold(0.85, 45, 50),
    "Samsung": LogoThreshold(0.75, 30, 35),
}

DEFAULT_LOGO_THRESHOLD = LogoThreshold(0.75, 35, 35)

DEFAULT_CHALLENGES = {
    "Apple": ChallengeProfile(
        dark_device_adjustment=-10,
        notes="Logo detection may be challenging on dark devices"
    ),
    "Books": ChallengeProfile(
        no_logo_adjustment=-20,
        notes="Books may not have brand logos on cover"
    ),
}


@dataclass(frozen=True)
class DetectionProfiles:
    """Category baselines, brand logo thresholds and challenge corrections."""
    category_baselines: Mapping[str, int] = field(
        default_factory=lambda: _freeze(DEFAULT_CATEGORY_BASELINES)
    )
    logo_thresholds: Mapping[str, LogoThreshold] = field(
        default_factory=lambda: _freeze(DEFAULT_LOGO_THRESHOLDS)
    )
    default_logo_threshold: LogoThreshold = DEFAULT_LOGO_THRESHOLD
    challenges: Mapping[str, ChallengeProfile] = field(
        default_factory=lambda: _freeze(DEFAULT_CHALLENGES)
    )
    default_baseline_category: str = "Other"


class DetectionProfileResolver:
    """Pure lookups over an injected DetectionProfiles instance."""

    def __init__(self, profiles: Optional[DetectionProfiles] = None):
        self.profiles = profiles or DetectionProfiles()

    def get_baseline_risk(self, category: Optional[str]) -> int:
        """Baseline risk for a category, falling back to the default category."""
        baselines = self.profiles.category_baselines
        if category and category in baselines:
            return baselines[category]
        return baselines.get(self.profiles.default_baseline_category, 0)

    def get_logo_threshold(self, brand: Optional[str]) -> LogoThreshold:
        """Logo confidence requirements for a brand."""
        if brand and brand in self.profiles.logo_thresholds:
            return self.profiles.logo_thresholds[brand]
        return self.profiles.default_logo_threshold

    def get_challenge_adjustment(self, key: Optional[str], context: Mapping[str, Any]) -> int:
        """
        Negative correction for known false-positive-prone situations.

        Args:
            key: Brand or category name the challenge is registered under
            context: Flags describing the scan, ``has_dark_colors`` and ``no_logo``

        Returns:
            Adjustment in points (zero or negative)
        """
        challenge = self.profiles.challenges.get(key) if key else None
        if challenge is None:
            return 0

        adjustment = 0
        if context.get("has_dark_colors"):
            adjustment += challenge.dark_device_adjustment
        if context.get("no_logo"):
            adjustment += challenge.no_logo_adjustment
        return adjustment


DEFAULT_CATEGORY_KEYWORDS = {
    # Electronics
    "Smartphones": ("phone", "smartphone", "mobile", "cellphone", "iphone", "android", "device", "screen", "display"),
    "Tablets": ("tablet", "ipad", "device", "screen", "display", "touchscreen"),
    "Laptops": ("laptop", "computer", "notebook", "macbook", "pc", "keyboard", "screen"),
    "Desktop Computers": ("computer", "desktop", "pc", "monitor", "keyboard", "mouse"),
    "Smart Watches": ("watch", "smartwatch", "wearable", "fitness", "timepiece"),
    "Fitness Trackers": ("tracker", "fitness", "wearable", "band", "watch"),
    "Headphones": ("headphones", "headset", "audio", "earphones", "music"),
    "Earbuds": ("earbuds", "earphones", "audio", "wireless", "music"),
    "Speakers": ("speaker", "audio", "sound", "music", "bluetooth"),
    "Cameras": ("camera", "lens", "photography", "photo", "dslr"),
    "Drones": ("drone", "quadcopter", "aircraft", "flying", "aerial"),
    "Gaming Consoles": ("console", "gaming", "playstation", "xbox", "nintendo", "controller"),
    "VR Headsets": ("vr", "headset", "virtual reality", "goggles", "gaming"),
    # Fashion & Accessories
    "Sunglasses": ("sunglasses", "glasses", "eyewear", "shades", "accessory"),
    "Eyeglasses": ("glasses", "eyeglasses", "eyewear", "spectacles", "frames"),
    "Eyewear": ("glasses", "eyewear", "sunglasses", "eyeglasses"),
    "Handbags": ("handbag", "bag", "purse", "tote", "accessory", "fashion"),
    "Wallets": ("wallet", "purse", "accessory", "leather"),
    "Belts": ("belt", "accessory", "leather", "fashion"),
    "Watches": ("watch", "timepiece", "wristwatch", "accessory"),
    "Jewelry": ("jewelry", "jewellery", "necklace", "ring", "bracelet", "earring"),
    "Shoes": ("shoe", "footwear", "sneaker", "boot", "sandal"),
    "Sneakers": ("sneaker", "shoe", "footwear", "athletic", "running"),
    "Boots": ("boot", "shoe", "footwear"),
    "Sandals": ("sandal", "shoe", "footwear", "flip-flop"),
    "Clothing": ("clothing", "apparel", "shirt", "pants", "dress", "jacket", "textile", "fabric", "garment"),
    "Jackets": ("jacket", "coat", "outerwear", "clothing"),
    "Hats": ("hat", "cap", "headwear", "accessory"),
    "Scarves": ("scarf", "accessory", "textile"),
    # Beauty & Personal Care
    "Perfumes": ("perfume", "fragrance", "bottle", "cosmetic", "scent"),
    "Cosmetics": ("cosmetic", "makeup", "beauty", "lipstick", "powder"),
    # Sports & Outdoor
    "Sports Equipment": ("sports", "equipment", "ball", "athletic", "fitness"),
    "Fitness Equipment": ("fitness", "equipment", "gym", "exercise", "workout"),
    "Bicycles": ("bicycle", "bike", "cycling", "wheel"),
    # Home & Kitchen
    "Kitchen Appliances": ("appliance", "kitchen", "cooking", "blender", "mixer"),
    "Furniture": ("furniture", "chair", "table", "sofa", "desk"),
    # Automotive
    "Car Parts": ("car", "automotive", "vehicle", "part", "auto"),
    "Tires": ("tire", "tyre", "wheel", "automotive", "rubber"),
    # Toys & Games
    "Toys": ("toy", "plaything", "game", "doll", "action figure"),
    "Board Games": ("game", "board game", "cards", "dice"),
    # Health & Medical
    "Medicines": ("medicine", "medication", "pill", "tablet", "pharmaceutical", "drug"),
    "Supplements": ("supplement", "vitamin", "pill", "capsule", "bottle"),
    # Food & Beverages
    "Packaged Foods": ("food", "package", "snack", "product", "packaging"),
    "Beverages": ("beverage", "drink", "bottle", "can", "liquid"),
    "Alcohol": ("alcohol", "wine", "beer", "liquor", "bottle", "drink"),
    # Books & Media
    "Books": ("book", "publication", "text", "reading", "paper"),
    "DVDs": ("dvd", "disc", "media", "movie"),
    "Video Games": ("video game", "game", "disc", "cartridge"),
    # Office & Stationery
    "Office Supplies": ("office", "stationery", "supplies", "paper", "pen"),
    "Notebooks": ("notebook", "notepad", "paper", "writing", "stationery", "book"),
    "Pens": ("pen", "writing", "stationery", "ink"),
    "Audio": ("audio", "sound", "music", "speaker", "headphones", "earbuds"),
    "Gaming": ("gaming", "game", "console", "controller", "video game"),
    "Accessories": ("accessory", "fashion", "jewelry", "bag", "belt"),
    "Other": (),
}

DEFAULT_CATEGORY_BRANDS = {
    "Smartphones": ("Apple", "Samsung", "Google", "OnePlus", "Xiaomi", "Huawei", "Oppo", "Vivo", "Realme", "Nokia"),
    "Tablets": ("Apple", "Samsung", "Microsoft", "Amazon", "Lenovo"),
    "Laptops": ("Apple", "Dell", "HP", "Lenovo", "Asus", "Acer", "Microsoft"),
    "Watches": ("Rolex", "Omega", "Tag Heuer", "Apple", "Samsung", "Fossil", "Casio", "Seiko"),
    "Smart Watches": ("Apple", "Samsung", "Garmin", "Fitbit", "Fossil", "Amazfit"),
    "Shoes": ("Nike", "Adidas", "Puma", "Reebok", "New Balance", "Converse", "Vans", "Under Armour"),
    "Sneakers": ("Nike", "Adidas", "Puma", "Reebok", "New Balance", "Converse", "Vans"),
    "Handbags": ("Louis Vuitton", "Gucci", "Prada", "Chanel", "Hermes", "Coach", "Michael Kors"),
    "Sunglasses": ("Ray-Ban", "Oakley", "Gucci", "Prada", "Versace", "Dior"),
    "Eyeglasses": ("Ray-Ban", "Oakley", "Gucci", "Prada", "Versace"),
    "Eyewear": ("Ray-Ban", "Oakley", "Gucci", "Prada", "Versace"),
    "Headphones": ("Sony", "Bose", "Beats", "Sennheiser", "JBL", "Audio-Technica"),
    "Earbuds": ("Apple", "Samsung", "Sony", "Bose", "Jabra"),
    "Perfumes": ("Chanel", "Dior", "Gucci", "Versace", "Calvin Klein", "Hugo Boss"),
    "Cosmetics": ("MAC", "Estee Lauder", "Chanel", "Dior", "Maybelline"),
    "Clothing": ("Nike", "Adidas", "Gucci", "Prada", "Zara", "H&M"),
    "Jackets": ("North Face", "Patagonia", "Columbia", "Nike", "Adidas"),
}

DEFAULT_BRAND_MISSPELLINGS = {
    "Apple": ("Appel", "Aple", "Appl"),
    "Nike": ("Nikee", "Nik", "Nyke"),
    "Adidas": ("Adiddas", "Addidas", "Adibas"),
    "Samsung": ("Samsang", "Samsnug", "Samsumg"),
    "Gucci": ("Guccci", "Guci", "Guchi"),
    "Louis Vuitton": ("Louis Vuiton", "Luis Vuitton", "Loui Vuitton"),
    "Rolex": ("Rolexx", "Rollex"),
}

DEFAULT_WATERMARK_PATTERNS = (
    "funskyonline",
    "stockphoto",
    "shutterstock",
    "gettyimages",
    "dreamstime",
    "istockphoto",
    "alamy",
    "depositphotos",
    "watermark",
    ".com/",
    "www.",
    "http://",
    "https://",
)

DEFAULT_SUSPICIOUS_PHRASES = (
    "made in chaina",
    "guarante",
    "orignal",
    "authantic",
    "waranty",
)

DEFAULT_COUNTERFEIT_PATTERNS = {
    "Smartphones": CounterfeitPattern(
        term_groups=(("apple", "iphone"), ("android",)),
        message="Apple branding with Android indicators - likely counterfeit"
    ),
    "Shoes": CounterfeitPattern(
        term_groups=(("defect", "damage"),),
        message="Quality defects detected in product"
    ),
    "Watches": CounterfeitPattern(
        term_groups=(("plastic",),),
        message="Plastic materials detected on luxury watch"
    ),
}

DEFAULT_LABEL_CATEGORIES = {
    "book": "Books",
    "publication": "Books",
    "mobile phone": "Smartphones",
    "smartphone": "Smartphones",
    "cellphone": "Smartphones",
    "cosmetics": "Cosmetics",
    "perfume": "Perfumes",
    "makeup": "Cosmetics",
    "shoe": "Shoes",
    "sneaker": "Sneakers",
    "footwear": "Shoes",
    "bottle": "Beverages",
    "drink": "Beverages",
    "food": "Packaged Foods",
    "snack": "Packaged Foods",
}


@dataclass(frozen=True)
class DetectionVocabulary:
    """Keyword and phrase tables consulted by the matcher and detector."""
    category_keywords: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: _freeze(DEFAULT_CATEGORY_KEYWORDS)
    )
    category_brands: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: _freeze(DEFAULT_CATEGORY_BRANDS)
    )
    brand_misspellings: Mapping[str, Tuple[str, ...]] = field(
        default_factory=lambda: _freeze(DEFAULT_BRAND_MISSPELLINGS)
    )
    watermark_patterns: Tuple[str, ...] = DEFAULT_WATERMARK_PATTERNS
    suspicious_phrases: Tuple[str, ...] = DEFAULT_SUSPICIOUS_PHRASES
    counterfeit_patterns: Mapping[str, CounterfeitPattern] = field(
        default_factory=lambda: _freeze(DEFAULT_COUNTERFEIT_PATTERNS)
    )
    label_categories: Mapping[str, str] = field(
        default_factory=lambda: _freeze(DEFAULT_LABEL_CATEGORIES)
    )
    lenient_category: str = "Other"
