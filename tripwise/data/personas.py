"""Travel personas and the place categories each one favours.

A candidate whose categories intersect an active persona's set gets the
persona boost during scoring. Personas never penalize.
"""

from dataclasses import dataclass
from enum import Enum


class PersonaType(str, Enum):
    GENERAL_TOURIST = "general_tourist"
    NATURE_LOVER = "nature_lover"
    FIRST_TIME_VISITOR = "first_time_visitor"
    ART_ENTHUSIAST = "art_enthusiast"
    FOODIE_TRAVELER = "foodie_traveler"
    ADVENTURE_SEEKER = "adventure_seeker"
    DIGITAL_NOMAD = "digital_nomad"
    HISTORY_BUFF = "history_buff"
    PHOTOGRAPHY_ENTHUSIAST = "photography_enthusiast"


@dataclass(frozen=True)
class PersonaMetadata:
    type: PersonaType
    label: str
    description: str


PERSONA_CATEGORIES: dict[PersonaType, frozenset[str]] = {
    PersonaType.GENERAL_TOURIST: frozenset({
        "tourist_attraction", "museum", "park", "historical_landmark", "plaza", "visitor_center",
    }),
    PersonaType.FIRST_TIME_VISITOR: frozenset({
        "tourist_attraction", "historical_landmark", "monument", "observation_deck", "museum",
    }),
    PersonaType.NATURE_LOVER: frozenset({
        "national_park", "state_park", "hiking_area", "botanical_garden", "wildlife_park",
        "wildlife_refuge",
    }),
    PersonaType.ART_ENTHUSIAST: frozenset({
        "art_gallery", "museum", "sculpture", "performing_arts_theater", "opera_house",
        "philharmonic_hall", "cultural_landmark", "historical_place",
    }),
    PersonaType.FOODIE_TRAVELER: frozenset({
        "restaurant", "cafe", "coffee_shop", "fine_dining_restaurant", "food_court", "pub",
        "wine_bar", "bakery",
    }),
    PersonaType.ADVENTURE_SEEKER: frozenset({
        "adventure_sports_center", "amusement_park", "hiking_area", "off_roading_area",
        "roller_coaster", "water_park", "ski_resort", "national_park",
    }),
    PersonaType.DIGITAL_NOMAD: frozenset({
        "cafe", "coffee_shop", "internet_cafe", "library", "hotel", "hostel", "guest_house",
    }),
    PersonaType.HISTORY_BUFF: frozenset({
        "historical_place", "historical_landmark", "monument", "museum", "cultural_landmark",
    }),
    PersonaType.PHOTOGRAPHY_ENTHUSIAST: frozenset({
        "observation_deck", "garden", "plaza", "beach", "art_gallery", "sculpture",
        "historical_landmark", "wildlife_park", "wildlife_refuge", "botanical_garden",
    }),
}

PERSONA_METADATA: dict[PersonaType, PersonaMetadata] = {
    PersonaType.GENERAL_TOURIST: PersonaMetadata(
        PersonaType.GENERAL_TOURIST, "General Tourist",
        "Popular destinations and well-known attractions",
    ),
    PersonaType.NATURE_LOVER: PersonaMetadata(
        PersonaType.NATURE_LOVER, "Nature Lover",
        "Outdoor activities, parks, and natural landscapes",
    ),
    PersonaType.FIRST_TIME_VISITOR: PersonaMetadata(
        PersonaType.FIRST_TIME_VISITOR, "First-Time Visitor",
        "Must-see spots and comprehensive guidance",
    ),
    PersonaType.ART_ENTHUSIAST: PersonaMetadata(
        PersonaType.ART_ENTHUSIAST, "Art Enthusiast",
        "Museums, galleries, and cultural experiences",
    ),
    PersonaType.FOODIE_TRAVELER: PersonaMetadata(
        PersonaType.FOODIE_TRAVELER, "Foodie Traveler",
        "Local cuisine, cafes, and dining experiences",
    ),
    PersonaType.ADVENTURE_SEEKER: PersonaMetadata(
        PersonaType.ADVENTURE_SEEKER, "Adventure Seeker",
        "Thrills, outdoor sports, and active days",
    ),
    PersonaType.DIGITAL_NOMAD: PersonaMetadata(
        PersonaType.DIGITAL_NOMAD, "Digital Nomad",
        "Work-friendly cafes, libraries, and long stays",
    ),
    PersonaType.HISTORY_BUFF: PersonaMetadata(
        PersonaType.HISTORY_BUFF, "History Buff",
        "Landmarks, monuments, and historical sites",
    ),
    PersonaType.PHOTOGRAPHY_ENTHUSIAST: PersonaMetadata(
        PersonaType.PHOTOGRAPHY_ENTHUSIAST, "Photography Enthusiast",
        "Viewpoints, gardens, and photogenic spots",
    ),
}


def categories_for(personas) -> frozenset[str]:
    """Union of the category sets of all active personas."""
    result: set[str] = set()
    for persona in personas:
        result |= PERSONA_CATEGORIES.get(PersonaType(persona), frozenset())
    return frozenset(result)
