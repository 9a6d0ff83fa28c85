from nutrition import NutritionFacts, format_amount, front_image_url


def test_from_product_extracts_serving_values(product_json):
    facts = NutritionFacts.from_product(product_json)

    assert facts.code == "3017620422003"
    assert facts.product_name == "Nutella"
    assert facts.serving_size == "15 g"
    assert facts.image_url == "https://images.openfoodfacts.org/front_en.400.jpg"
    assert facts.energy_kcal == 80
    assert facts.carbohydrates == 8.62
    assert facts.proteins == 0.9  # sent as a string
    assert facts.fat == 4.6


def test_from_product_missing_fields():
    facts = NutritionFacts.from_product({"code": "12345678", "nutriments": {"fat_serving": ""}})

    assert facts.image_url is None
    assert facts.serving_size is None
    assert facts.energy_kcal is None
    assert facts.fat is None


def test_non_numeric_nutriment_becomes_none():
    facts = NutritionFacts.from_product({"nutriments": {"proteins_serving": "traces"}})
    assert facts.proteins is None


def test_front_image_language_fallbacks(product_json):
    assert front_image_url(product_json, "fr").endswith("front_fr.400.jpg")
    assert front_image_url(product_json, "es").endswith(".400.jpg")

    del product_json["selected_images"]
    assert front_image_url(product_json, "en") == "https://images.openfoodfacts.org/front.jpg"


def test_format_amount():
    assert format_amount(12.0) == "12"
    assert format_amount(8.62, "g") == "8.6g"
    assert format_amount(0.0, "g") == "0g"
    assert format_amount(None, "g") == "N/D"


def test_format_amount_keeps_large_values_exact():
    assert format_amount(123456.7) == "123456.7"
    assert format_amount(2500000.0, "g") == "2500000g"


def test_non_finite_nutriment_becomes_none():
    facts = NutritionFacts.from_product({"nutriments": {"fat_serving": "nan", "proteins_serving": "inf"}})
    assert facts.fat is None
    assert facts.proteins is None
