"""Bangkok sample restaurants used to seed development stores."""

from typing import List

from bitebase.core.models import DATA_SOURCE_LOCAL, Coordinates, RestaurantRecord

BANGKOK_CENTER = Coordinates(13.7563, 100.5018)

_SAMPLE_ROWS = [
    {
        "id": "rest_001",
        "name": "Bella Vista Bistro",
        "lat": 13.7563,
        "lng": 100.5018,
        "address": "123 Sukhumvit Road, Watthana, Bangkok 10110",
        "cuisine": ["Thai", "International"],
        "rating": 4.6,
        "review_count": 1250,
        "price_level": 2,
        "metadata": {
            "externalId": "ChIJ123456789",
            "phone": "+66-2-123-4567",
            "website": "https://bellavista.com",
            "features": ["delivery", "takeout", "dine_in", "wifi", "parking"],
            "wongnaiId": "12345",
        },
    },
    {
        "id": "rest_002",
        "name": "Spice Garden Thai",
        "lat": 13.7244,
        "lng": 100.5347,
        "address": "456 Silom Road, Bang Rak, Bangkok 10500",
        "cuisine": ["Thai", "Street Food"],
        "rating": 4.4,
        "review_count": 890,
        "price_level": 1,
        "metadata": {
            "externalId": "ChIJ987654321",
            "phone": "+66-2-987-6543",
            "website": "https://spicegarden.com",
            "features": ["delivery", "takeout", "dine_in"],
            "wongnaiId": "67890",
        },
    },
    {
        "id": "rest_003",
        "name": "Bangkok Kitchen",
        "lat": 13.7650,
        "lng": 100.5380,
        "address": "789 Ploenchit Road, Lumpini, Bangkok 10330",
        "cuisine": ["Thai", "Asian Fusion"],
        "rating": 4.5,
        "review_count": 640,
        "price_level": 3,
        "metadata": {
            "externalId": "ChIJ456789123",
            "phone": "+66-2-456-7890",
            "website": "https://bangkokkitchen.com",
            "features": ["delivery", "takeout", "dine_in", "wifi", "parking", "outdoor_seating"],
            "wongnaiId": "11111",
        },
    },
    {
        "id": "rest_004",
        "name": "Street Food Paradise",
        "lat": 13.7470,
        "lng": 100.4850,
        "address": "321 Khao San Road, Phra Nakhon, Bangkok 10200",
        "cuisine": ["Thai", "Street Food", "Local"],
        "rating": 4.2,
        "review_count": 410,
        "price_level": 1,
        "metadata": {
            "externalId": "ChIJ789123456",
            "phone": "+66-2-321-6547",
            "features": ["takeout", "dine_in"],
            "wongnaiId": "22222",
        },
    },
    {
        "id": "rest_005",
        "name": "Modern Thai Cuisine",
        "lat": 13.7800,
        "lng": 100.5200,
        "address": "654 Ratchadamri Road, Pathum Wan, Bangkok 10330",
        "cuisine": ["Thai", "Fine Dining", "Modern"],
        "rating": 4.8,
        "review_count": 320,
        "price_level": 4,
        "metadata": {
            "externalId": "ChIJ147258369",
            "phone": "+66-2-654-9870",
            "website": "https://modernthai.com",
            "features": ["dine_in", "wifi", "parking", "valet", "private_dining"],
            "wongnaiId": "33333",
        },
    },
    {
        "id": "rest_006",
        "name": "Riverside Thai Restaurant",
        "lat": 13.7200,
        "lng": 100.4900,
        "address": "987 Chao Phraya River, Thon Buri, Bangkok 10600",
        "cuisine": ["Thai", "Seafood", "River View"],
        "rating": 4.3,
        "review_count": 275,
        "price_level": 3,
        "metadata": {
            "externalId": "ChIJ369147258",
            "phone": "+66-2-987-1234",
            "website": "https://riverside-thai.com",
            "features": ["dine_in", "wifi", "parking", "river_view", "outdoor_seating"],
            "wongnaiId": "44444",
        },
    },
]


def sample_restaurants() -> List[RestaurantRecord]:
    return [
        RestaurantRecord(
            id=row["id"],
            name=row["name"],
            coordinates=Coordinates(row["lat"], row["lng"]),
            data_source=DATA_SOURCE_LOCAL,
            rating=row["rating"],
            price_level=row["price_level"],
            cuisine=list(row["cuisine"]),
            address=row["address"],
            review_count=row["review_count"],
            metadata=dict(row["metadata"]),
        )
        for row in _SAMPLE_ROWS
    ]
