"""
Breeding and management recommendations for the report view.
"""

from typing import Dict, List, Sequence

from .entities import CowAnalysis

RECOMMENDATION_THRESHOLD = 6

# category key -> (label, issue, suggestion), in report order
RECOMMENDATION_RULES = [
    ('dairy_character', 'Dairy Character',
     'Below average dairy character score',
     'Focus on breeding for improved body proportion and dairy type features'),
    ('mammary_system', 'Mammary System',
     'Mammary system needs improvement',
     'Consider udder conformation and attachment evaluation'),
    ('body_capacity', 'Body Capacity',
     'Limited body capacity',
     'Improve feeding regime and monitor body condition score'),
    ('feet_legs', 'Feet & Legs',
     'Structural issues with feet and legs',
     'Monitor mobility and consider hoof care management'),
]


def generate_recommendations(cows: Sequence[CowAnalysis]) -> List[Dict]:
    """
    Build recommendations from scored cows.

    Compares the unrounded category scores, so a 5.996 is still below 6
    even though the response shows 6.0.

    Returns:
        One entry per cow and category scoring below 6.
    """
    recommendations = []

    for cow in cows:
        scores = cow.atc_result.category_scores

        for key, category, issue, suggestion in RECOMMENDATION_RULES:
            if getattr(scores, key) < RECOMMENDATION_THRESHOLD:
                recommendations.append({
                    'cow_id': cow.cow_id,
                    'category': category,
                    'issue': issue,
                    'suggestion': suggestion,
                })

    return recommendations
