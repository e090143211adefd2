"""Word lists that drive photo search tokens, relevance checks and ranking.

Ranking code only sees a :class:`Vocabulary`, so a different topic domain can
be plugged in by building another instance.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

STOP_WORDS = frozenset(
    """
    the and for with from that this when your into new news day first things
    check car cars deal month returns interior image gallery best take takes
    promises levels efficiency media advisory announce results press release
    releases report reports reported estimated consolidated shipments units
    full year quarter q1 q2 q3 q4 fiscal resets business meet customer
    customers preference preferences support profitable growth strategy
    strategic operations global group company companies official statement
    its january february march april may june july august september october
    november december jan feb mar apr jun jul aug sep sept oct nov dec
    """.split()
)

AUTO_BRANDS = frozenset(
    """
    toyota stellantis kia hyundai peugeot ram nissan ford jeep honda bmw audi
    mercedes volkswagen porsche mazda subaru volvo renault citroen opel fiat
    maserati chrysler dodge lamborghini ferrari bugatti mclaren bentley rolls
    royce rolls-royce aston martin koenigsegg pagani rimac lotus alfa romeo
    mansory tesla polestar
    """.split()
)

AUTO_CONTEXT_TOKENS = frozenset(
    """
    car cars engine hybrid suv truck vehicle motorcycle motorbike bike
    motorsport motorsports racing race museum sedan hatchback coupe wagon
    crossover horsepower torque diesel petrol ev electric auto automotive
    automobile automobiles robotaxi autonomous traffic fuel oil price avto
    avtomobil avtomobile avtorynok avtorynka autorynok autorynka sprit
    spritpreis kraftstoff benzin tankstelle verkehr авто автомобіль автомобілі
    авторинок авторинку пальне нафта бензин дизель supercar hypercar
    """.split()
)

AUTO_TUNERS = frozenset({"mansory", "novitec", "brabus", "abt", "alpina"})

GENERIC_VEHICLE_HINTS = (
    "car", "cars", "vehicle", "vehicles", "automobile", "automobiles", "auto",
    "suv", "truck", "pickup", "sedan", "hatchback", "coupe", "wagon",
    "crossover", "motorcycle", "motorbike", "bike", "motorsport", "racing",
)

VISUAL_HINTS = tuple(sorted(AUTO_BRANDS)) + (
    "car", "cars", "vehicle", "vehicles", "automobile", "automobiles", "suv",
    "truck", "pickup", "sedan", "hatchback", "coupe", "wagon", "crossover",
    "motorcycle", "motorbike", "bike", "motorsport", "motorsports", "racing",
    "race", "supercar", "hypercar", "fuel", "petrol", "diesel", "gasoline",
    "tankstelle", "filling_station", "gas_station", "pump",
)

NON_PHOTO_HINTS = (
    "chart", "graph", "diagram", "table", "logo", "icon", "map", "screenshot",
    "render", "illustration", "infographic", "watermark", "sales_of",
    "sales-of", "sales ", "figure_", "income", "net_income", "marketcap",
    "market_cap", "stock_price", "gare", "plaque", "inaugurale", "badge",
    "signature",
)

INTENT_PATTERNS = (
    re.compile(
        r"(?:^|[^a-z])(auto|avto|car|cars|vehicle|vehicles|suv|truck|pickup|motor|"
        r"diesel|petrol|fuel|oil|benzin|sprit|verkehr)(?:[^a-z]|$)"
    ),
    re.compile(r"(?:авто|автомоб|авторин|пальн|нафт|бензин|дизел)"),
)

GENERIC_QUERIES = ("automobile", "car", "sport utility vehicle", "electric car", "pickup truck")

GENERIC_RELEVANCE_TOKENS = ("car", "automobile", "vehicle", "auto")


@dataclass(frozen=True, slots=True)
class Vocabulary:
    stop_words: frozenset[str] = STOP_WORDS
    brands: frozenset[str] = AUTO_BRANDS
    context_tokens: frozenset[str] = AUTO_CONTEXT_TOKENS
    tuners: frozenset[str] = AUTO_TUNERS
    generic_hints: tuple[str, ...] = GENERIC_VEHICLE_HINTS
    visual_hints: tuple[str, ...] = VISUAL_HINTS
    non_photo_hints: tuple[str, ...] = NON_PHOTO_HINTS
    intent_patterns: tuple[re.Pattern[str], ...] = INTENT_PATTERNS
    generic_queries: tuple[str, ...] = GENERIC_QUERIES
    generic_relevance_tokens: tuple[str, ...] = GENERIC_RELEVANCE_TOKENS
    default_context: str = "vehicle"
    secondary_context: str = "car"

    def is_brand(self, token: str) -> bool:
        return token in self.brands

    def is_context(self, token: str) -> bool:
        return token in self.context_tokens

    def looks_non_photographic(self, text: str) -> bool:
        return any(hint in text for hint in self.non_photo_hints)

    def looks_visual(self, text: str) -> bool:
        return any(hint in text for hint in self.visual_hints)


DEFAULT_VOCABULARY = Vocabulary()
