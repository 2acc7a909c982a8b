from app.application.services.product_classifier import (
    classify_product,
    classify_quality,
    classify_type,
)
from app.shared.constants.live_sync_constants import ProductQuality, ProductType


def test_category_marker_wins() -> None:
    assert classify_type("LTR", "225/65R17", None) == ProductType.LIGHT_TRUCK


def test_size_patterns() -> None:
    assert classify_type(None, "P225/65R17", None) == ProductType.PASSENGER
    assert classify_type(None, "LT245/75R16", None) == ProductType.LIGHT_TRUCK
    assert classify_type(None, "11R22.5", None) == ProductType.MEDIUM_TRUCK


def test_name_fallback_and_other() -> None:
    assert classify_type(None, None, "Spare tire") == ProductType.PASSENGER
    assert classify_type("SVC", None, "Oil change") == ProductType.OTHER


def test_quality_by_brand() -> None:
    assert classify_quality("Michelin") == ProductQuality.PREMIUM
    assert classify_quality("COOPER TIRES") == ProductQuality.STANDARD
    assert classify_quality("Westlake") == ProductQuality.ECONOMY
    assert classify_quality("Acme") == ProductQuality.UNKNOWN
    assert classify_quality(None) == ProductQuality.UNKNOWN


def test_category_type_overrides_heuristic() -> None:
    # CatType 0: aunque la medida parezca de llanta, es servicio/parte
    result = classify_product("SVC", "225/65R17", "Mount", "Michelin", category_type=0)
    assert result.is_tire is False
    assert result.product_type == ProductType.OTHER
    assert result.quality == ProductQuality.UNKNOWN

    result = classify_product("X1", None, "Something", "Michelin", category_type=1)
    assert result.is_tire is True
    assert result.product_type == ProductType.PASSENGER
    assert result.quality == ProductQuality.PREMIUM


def test_heuristic_without_category_type() -> None:
    result = classify_product(None, "LT245/75R16", None, "Sailun")
    assert result.is_tire is True
    assert result.product_type == ProductType.LIGHT_TRUCK
    assert result.quality == ProductQuality.ECONOMY
