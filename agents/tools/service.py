# server/agents/tools/service.py
"""
Lookup tools available to the diagnosis agent.

Every function here is pure: the output depends only on the parameters and
reference tables are deep-copied before they leave this module.
"""
import copy
import hashlib
from typing import Any, Dict, List, Optional

import numpy as np

from core.exceptions import ToolError

WIND_DIRECTIONS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]

COMMON_DISEASES = {
    "wheat": ["Wheat Rust", "Powdery Mildew", "Septoria Leaf Blotch", "Fusarium Head Blight"],
    "rice": ["Bacterial Leaf Blight", "Rice Blast", "Brown Spot", "Sheath Blight"],
    "cotton": ["Cotton Bollworm", "Verticillium Wilt", "Fusarium Wilt", "Bacterial Blight"],
    "tomato": ["Late Blight", "Early Blight", "Bacterial Spot", "Fusarium Wilt", "Mosaic Virus"],
    "potato": ["Late Blight", "Early Blight", "Common Scab", "Potato Virus Y"],
    "maize": ["Northern Corn Leaf Blight", "Gray Leaf Spot", "Common Rust", "Smut"],
}

CROP_DATABASE: Dict[str, Dict[str, Any]] = {
    "tomato": {
        "disease_susceptibility": {
            "high": ["Early Blight", "Late Blight", "Septoria Leaf Spot", "Bacterial Spot"],
            "medium": ["Fusarium Wilt", "Verticillium Wilt", "Powdery Mildew"],
            "low": ["Anthracnose", "Gray Mold"],
            "environmental_factors": {
                "humidity_threshold": 85,
                "optimal_temp_range": [18, 27],
                "critical_growth_stages": ["Flowering", "Fruit Set", "Early Fruit Development"],
            },
        },
        "treatment_options": {
            "Early Blight": {
                "organic": ["Copper fungicide", "Neem oil", "Bacillus subtilis", "Compost tea"],
                "chemical": ["Chlorothalonil", "Mancozeb", "Azoxystrobin"],
                "cultural": ["Crop rotation (3 years)", "Mulching", "Drip irrigation", "Lower leaf removal"],
                "resistant_varieties": ["Mountain Magic", "Iron Lady", "Defiant PHR"],
                "effectiveness_timeline": "5-7 days for visible improvement, 14 days for 70% reduction",
            },
            "Late Blight": {
                "organic": ["Copper hydroxide", "Bacillus amyloliquefaciens"],
                "chemical": ["Mancozeb + Metalaxyl", "Cymoxanil", "Fluazinam"],
                "cultural": ["Destroy infected plants immediately", "Increase spacing", "Avoid overhead watering"],
                "resistant_varieties": ["Mountain Merit", "Plum Regal", "Jasper"],
                "effectiveness_timeline": "3-5 days critical intervention period",
            },
        },
        "variety_info": {
            "Mountain Magic": {
                "resistance": ["Late Blight (Ph-2, Ph-3)", "Early Blight (moderate)", "Septoria"],
                "maturity": "70-75 days",
                "notes": "Excellent for organic production",
            },
            "Cherokee Purple": {
                "resistance": ["Low disease resistance"],
                "maturity": "80-90 days",
                "notes": "Heirloom, requires preventive care",
            },
        },
        "growth_stage_risks": {
            "Seedling": ["Damping off", "Root rot"],
            "Vegetative": ["Early Blight", "Bacterial Spot"],
            "Flowering": ["Blossom End Rot", "Calcium deficiency"],
            "Fruiting": ["Late Blight", "Fruit cracking", "Sunscald"],
        },
    },
    "wheat": {
        "disease_susceptibility": {
            "high": ["Rust (Leaf, Stem, Stripe)", "Fusarium Head Blight", "Powdery Mildew"],
            "medium": ["Septoria Tritici Blotch", "Tan Spot"],
            "low": ["Ergot", "Smut"],
        },
    },
    "rice": {
        "disease_susceptibility": {
            "high": ["Blast", "Bacterial Leaf Blight", "Sheath Blight"],
            "medium": ["Brown Spot", "Tungro"],
            "low": ["False Smut"],
        },
    },
}

CROP_QUERIES = ("disease_susceptibility", "treatment_options", "variety_info", "growth_stage_risks", "common_diseases")

DISEASE_RESEARCH: Dict[str, Dict[str, Any]] = {
    "early blight": {
        "pathogen": "Alternaria solani",
        "lifecycle": "7-10 days per cycle in optimal conditions (24-29C, >90% humidity)",
        "spread_mechanism": "Wind-dispersed conidia, rain splash, contaminated tools",
        "treatment_efficacy": {
            "Copper fungicide": {"effectiveness": "70-85%", "onset": "5-7 days", "duration": "10-14 days protection", "resistance_risk": "Low"},
            "Neem oil": {"effectiveness": "60-75%", "onset": "7-10 days", "duration": "7 days protection", "resistance_risk": "Very Low"},
            "Chlorothalonil": {"effectiveness": "85-95%", "onset": "3-5 days", "duration": "14-21 days protection", "resistance_risk": "Medium"},
        },
        "emerging_solutions": [
            "Bacillus subtilis QST 713 - biological control",
            "Trichoderma harzianum - preventive application, soil health",
            "Chitosan-based elicitors - induced systemic resistance",
        ],
        "economic_impact": {
            "yield_loss_untreated": "30-50% in severe outbreaks",
            "optimal_intervention_window": "First 7 days after symptom appearance",
        },
    },
    "late blight": {
        "pathogen": "Phytophthora infestans",
        "lifecycle": "3-5 days per cycle (highly aggressive)",
        "spread_mechanism": "Airborne sporangia, can travel 20+ km",
        "treatment_efficacy": {
            "Mancozeb + Metalaxyl": {"effectiveness": "90-95%", "onset": "2-3 days", "duration": "7-10 days protection", "resistance_risk": "High (metalaxyl)"},
        },
        "economic_impact": {
            "yield_loss_untreated": "80-100% (total crop loss possible)",
            "optimal_intervention_window": "Immediate",
        },
    },
}

SOIL_REQUIREMENTS: Dict[str, Dict[str, Any]] = {
    "tomato": {
        "optimal_ph": {"min": 6.0, "max": 6.8, "ideal": 6.5},
        "nutrients": {
            "nitrogen": {"range": "100-150 ppm", "deficiency_symptoms": "Yellowing lower leaves"},
            "phosphorus": {"range": "40-80 ppm", "deficiency_symptoms": "Purple stems, stunted growth"},
            "potassium": {"range": "200-300 ppm", "deficiency_symptoms": "Leaf edge burn, poor fruit quality"},
            "calcium": {"range": "1500-2000 ppm", "deficiency_symptoms": "Blossom end rot"},
            "magnesium": {"range": "150-250 ppm", "deficiency_symptoms": "Interveinal chlorosis"},
        },
        "disease_resistance_amendments": {
            "Early Blight": [
                "Increase calcium (strengthens cell walls)",
                "Balanced NPK (avoid excess nitrogen)",
                "Add compost (beneficial microbes)",
            ],
            "Late Blight": [
                "Improve drainage (reduce soil moisture)",
                "Potassium boost (disease resistance)",
                "Avoid high nitrogen (promotes susceptibility)",
            ],
        },
        "soil_amendments": {
            "clay": ["Add compost (drainage)", "Gypsum (structure)", "Perlite (aeration)"],
            "sandy": ["Add compost (water retention)", "Peat moss (organic matter)"],
            "loam": ["Maintain with compost", "Balanced fertilization"],
        },
    },
}

def _require(params: Dict[str, Any], name: str) -> str:
    value = params.get(name)
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ToolError(f"Missing required parameter: {name}")
    return str(value).strip()

def _lookup(table: Dict[str, Any], key: str) -> Optional[Any]:
    entry = table.get(key.strip().lower())
    return copy.deepcopy(entry) if entry is not None else None

def _seed_for(text: str) -> int:
    digest = hashlib.sha256(text.strip().lower().encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")

def get_weather_forecast(params: Dict[str, Any]) -> Dict[str, Any]:
    """Synthetic forecast for treatment timing, stable for a given location"""
    location = _require(params, "location")
    try:
        days = int(params.get("days", 7))
    except (TypeError, ValueError):
        raise ToolError(f"Invalid days value: {params.get('days')!r}")
    days = max(1, min(7, days))

    rng = np.random.default_rng(_seed_for(location))
    base_temp = 22 + rng.random() * 8
    base_humidity = 60 + rng.random() * 30

    forecast: List[Dict[str, Any]] = []
    for day in range(1, days + 1):
        temp = base_temp + (rng.random() - 0.5) * 6
        humidity = min(100.0, base_humidity + (rng.random() - 0.5) * 20)
        rain_chance = rng.random() * 100
        wind_speed = 5 + rng.random() * 15

        forecast.append({
            "day": day,
            "temperature": {"min": round(temp - 3), "max": round(temp + 3), "avg": round(temp)},
            "humidity": round(humidity),
            "precipitation": {
                "probability": round(rain_chance),
                "amount": round(rng.random() * 20) if rain_chance > 60 else 0,
            },
            "wind": {"speed": round(wind_speed), "direction": WIND_DIRECTIONS[int(rng.integers(0, 8))]},
            "conditions": "rainy" if rain_chance > 70 else "cloudy" if rain_chance > 40 else "sunny",
        })

    return {
        "location": location,
        "forecast": forecast,
        "summary": {
            "avgTemp": round(sum(d["temperature"]["avg"] for d in forecast) / days),
            "avgHumidity": round(sum(d["humidity"] for d in forecast) / days),
            "rainyDays": sum(1 for d in forecast if d["precipitation"]["probability"] > 60),
            "optimalSprayDays": [
                d["day"] for d in forecast
                if d["precipitation"]["probability"] < 30
                and d["wind"]["speed"] < 15
                and 15 < d["temperature"]["avg"] < 30
            ],
        },
        "treatmentRecommendations": {
            "bestDays": [d["day"] for d in forecast if d["precipitation"]["probability"] < 20],
            "avoidDays": [
                d["day"] for d in forecast
                if d["precipitation"]["probability"] > 70 or d["wind"]["speed"] > 20
            ],
            "timing": "Early morning (6-9 AM) or late evening (5-7 PM) for optimal absorption",
        },
    }

def query_crop_database(params: Dict[str, Any]) -> Dict[str, Any]:
    """Disease susceptibility, treatment options and variety data for a crop"""
    crop_type = _require(params, "cropType")
    query = _require(params, "query")
    if query not in CROP_QUERIES:
        raise ToolError(f"Unknown crop database query: {query}. Expected one of {list(CROP_QUERIES)}")

    if query == "common_diseases":
        data: Any = list(COMMON_DISEASES.get(crop_type.lower(), []))
    else:
        crop = _lookup(CROP_DATABASE, crop_type) or {}
        data = crop.get(query)

    found = bool(data)
    return {
        "cropType": crop_type,
        "variety": params.get("variety"),
        "query": query,
        "data": data if found else {"error": "Query not found in database"},
        "source": "LeafScan Crop Database",
        "confidence": 95 if found else 20,
    }

def search_disease_research(params: Dict[str, Any]) -> Dict[str, Any]:
    """Curated research summary for a disease"""
    disease = _require(params, "disease")
    research = _lookup(DISEASE_RESEARCH, disease)
    if research is None:
        research = {
            "error": "Limited research data available",
            "suggestion": "Consult local agricultural extension service",
        }
        confidence = 20
    else:
        confidence = 92

    treatment = params.get("treatment")
    if treatment and "treatment_efficacy" in research:
        efficacy = research["treatment_efficacy"].get(treatment)
        research["requested_treatment"] = efficacy or {"note": f"No efficacy data for {treatment}"}

    return {
        "disease": disease,
        "treatment": treatment,
        "region": params.get("region"),
        "research": research,
        "sources": ["PubMed Agricultural Database", "USDA Research Portal", "International Phytopathology Journal"],
        "confidence": confidence,
    }

def analyze_soil_requirements(params: Dict[str, Any]) -> Dict[str, Any]:
    """Soil and nutrient recommendations supporting disease resistance"""
    crop_type = _require(params, "cropType")
    recommendations = _lookup(SOIL_REQUIREMENTS, crop_type)
    disease = params.get("diseasePresent")
    soil_type = params.get("soilType")

    if recommendations is None:
        return {
            "cropType": crop_type,
            "diseasePresent": disease,
            "soilType": soil_type,
            "recommendations": {"error": "Crop not in database"},
            "confidence": 20,
        }

    if disease:
        amendments = recommendations.get("disease_resistance_amendments", {})
        recommendations["for_disease"] = amendments.get(disease, [])
    if soil_type:
        recommendations["for_soil"] = recommendations.get("soil_amendments", {}).get(str(soil_type).lower(), [])

    return {
        "cropType": crop_type,
        "diseasePresent": disease,
        "soilType": soil_type,
        "recommendations": recommendations,
        "confidence": 88,
    }
