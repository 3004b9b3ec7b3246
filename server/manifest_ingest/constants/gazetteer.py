"""
Stub gazetteer of Malaysian logistics locations.

Stands in for a geocoding service: inputs are matched by case-insensitive
keyword containment, first entry wins. Coordinates are representative.
"""

from typing import Dict, List, Optional

GazetteerEntry = Dict[str, object]

MALAYSIAN_LOCATIONS: List[GazetteerEntry] = [
    {
        "id": "PTP",
        "keywords": ["ptp", "pelabuhan tanjung pelepas", "tanjung pelepas"],
        "street": "Blok A, Wisma PTP, Jalan Pelabuhan Tanjung Pelepas",
        "city": "Gelang Patah",
        "state": "Johor",
        "postal_code": "81560",
        "latitude": 1.3624,
        "longitude": 103.5520,
    },
    {
        "id": "KLIA-CARGO",
        "keywords": ["klia", "cargo village", "klia cargo", "sepang"],
        "street": "KLIA Cargo Village, Free Commercial Zone",
        "city": "Sepang",
        "state": "Selangor",
        "postal_code": "64000",
        "latitude": 2.7456,
        "longitude": 101.7070,
    },
    {
        "id": "PENANG-PORT",
        "keywords": ["penang port", "butterworth", "nbct"],
        "street": "North Butterworth Container Terminal",
        "city": "Butterworth",
        "state": "Penang",
        "postal_code": "12100",
        "latitude": 5.4085,
        "longitude": 100.3607,
    },
    {
        "id": "POS-KL",
        "keywords": ["pos malaysia", "kuala lumpur", "kl mail centre"],
        "street": "Pusat Mel Nasional, Kompleks Dayabumi",
        "city": "Kuala Lumpur",
        "state": "W.P. Kuala Lumpur",
        "postal_code": "50670",
        "latitude": 3.1445,
        "longitude": 101.6931,
    },
    {
        "id": "SHAH-ALAM-HUB",
        "keywords": [
            "shah alam",
            "logistics hub",
            "sek 23",
            "xinhwa",
            "xin hwa",
            "niro shah alam",
            "pick up at niro",
        ],
        "street": "Jalan Jubli Perak 22/1, Seksyen 22",
        "city": "Shah Alam",
        "state": "Selangor",
        "postal_code": "40300",
        "latitude": 3.0520,
        "longitude": 101.5270,
    },
    {
        "id": "LOADUP-JB",
        "keywords": ["loadup jb", "load up jb", "jb hub"],
        "street": "1 Jalan Kempas Utama 3/1, Taman Kempas Utama",
        "city": "Johor Bahru",
        "state": "Johor",
        "postal_code": "81300",
        "latitude": 1.5540,
        "longitude": 103.7180,
    },
    {
        "id": "LOADUP-PN",
        "keywords": ["loadup pn", "load up pn", "penang hub", "prai hub"],
        "street": "Lot 247, Lorong Perusahaan 10, Prai Industrial Estate",
        "city": "Perai",
        "state": "Penang",
        "postal_code": "13600",
        "latitude": 5.3580,
        "longitude": 100.4100,
    },
]

DEFAULT_COUNTRY = "Malaysia"


def find_location_by_keywords(
    raw_input: Optional[str],
    entries: Optional[List[GazetteerEntry]] = None,
) -> Optional[GazetteerEntry]:
    if not raw_input:
        return None
    lowered = raw_input.lower()
    for entry in entries if entries is not None else MALAYSIAN_LOCATIONS:
        if any(keyword in lowered for keyword in entry["keywords"]):
            return entry
    return None
