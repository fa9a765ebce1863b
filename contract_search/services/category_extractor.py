"""Keyword-based category inference for contracts.

Scores each category by how often its keywords appear (as whole words) in a
contract's title and description. Keywords longer than four characters are
treated as more specific and weigh double.
"""
import re
from dataclasses import dataclass, field
from functools import lru_cache


CATEGORY_KEYWORDS: dict[str, list[str]] = {
    'Technology & IT': [
        'software', 'hardware', 'IT', 'computer', 'technology', 'tech', 'digital',
        'cloud', 'server', 'network', 'cybersecurity', 'data', 'analytics',
        'programming', 'development', 'web', 'mobile', 'app', 'system', 'database',
        'telecom', 'telecommunications', 'internet', 'wifi', 'voip', 'phone',
    ],
    'Healthcare & Medical': [
        'medical', 'health', 'healthcare', 'hospital', 'clinic', 'pharmaceutical',
        'dental', 'mental health', 'telemedicine', 'therapy', 'treatment', 'patient',
        'wellness', 'medicine', 'surgical', 'diagnostic', 'laboratory', 'nursing',
    ],
    'Facilities & Maintenance': [
        'cleaning', 'janitorial', 'maintenance', 'facility', 'building', 'security',
        'hvac', 'plumbing', 'electrical', 'repair', 'landscaping', 'groundskeeping',
        'pest control', 'fire safety', 'access control', 'surveillance',
    ],
    'Professional Services': [
        'consulting', 'legal', 'accounting', 'advisory', 'audit', 'compliance',
        'training', 'education', 'coaching', 'strategy', 'management', 'hr',
        'human resources', 'recruitment', 'staffing', 'payroll',
    ],
    'Office & Administrative': [
        'office', 'supplies', 'administrative', 'printing', 'paper', 'stationery',
        'furniture', 'workspace', 'desk', 'chair', 'storage', 'filing',
        'breakroom', 'cafeteria', 'kitchen', 'copier', 'scanner',
    ],
    'Transportation & Logistics': [
        'transportation', 'logistics', 'shipping', 'delivery', 'freight', 'cargo',
        'vehicle', 'fleet', 'truck', 'van', 'car', 'bus', 'travel', 'fuel',
        'warehouse', 'distribution', 'supply chain', 'moving', 'relocation',
    ],
    'Manufacturing & Industrial': [
        'manufacturing', 'industrial', 'production', 'factory', 'plant', 'machinery',
        'equipment', 'tools', 'materials', 'parts', 'components', 'assembly',
        'quality control', 'safety equipment', 'protective gear', 'uniforms',
    ],
    'Food & Hospitality': [
        'food', 'catering', 'restaurant', 'hospitality', 'kitchen', 'dining',
        'beverage', 'vending', 'snack', 'meal', 'nutrition', 'culinary',
        'banquet', 'event', 'conference', 'meeting',
    ],
    'Financial Services': [
        'financial', 'banking', 'insurance', 'investment', 'loan', 'credit',
        'payment', 'billing', 'accounting', 'bookkeeping', 'treasury', 'audit',
        'risk management', 'compliance', 'tax', 'payroll',
    ],
    'Marketing & Communications': [
        'marketing', 'advertising', 'promotion', 'communications', 'public relations',
        'branding', 'design', 'creative', 'media', 'social media', 'website',
        'content', 'copywriting', 'photography', 'video', 'print',
    ],
    'Construction & Real Estate': [
        'construction', 'building', 'real estate', 'property', 'renovation',
        'contractor', 'architecture', 'engineering', 'roofing', 'flooring',
        'painting', 'concrete', 'steel', 'lumber', 'permits',
    ],
    'Energy & Utilities': [
        'energy', 'utilities', 'electricity', 'gas', 'water', 'sewer', 'power',
        'renewable', 'solar', 'wind', 'battery', 'generator', 'lighting',
        'heating', 'cooling', 'sustainability', 'environmental',
    ],
}

MIN_CATEGORY_SCORE = 2


@dataclass
class CategoryScore:
    category: str
    score: int
    matched_keywords: list[str] = field(default_factory=list)


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(rf"\b{re.escape(keyword.lower())}\b")


def analyze_contract_description(title: str, description: str) -> list[CategoryScore]:
    text = f"{title or ''} {description or ''}".lower()
    scores: list[CategoryScore] = []

    for category, keywords in CATEGORY_KEYWORDS.items():
        matched: list[str] = []
        score = 0
        for keyword in keywords:
            hits = len(_keyword_pattern(keyword).findall(text))
            if hits:
                matched.append(keyword)
                score += hits * (2 if len(keyword) > 4 else 1)
        if score > 0:
            scores.append(CategoryScore(category, score, matched))

    # Stable sort keeps dictionary order among equal scores
    return sorted(scores, key=lambda s: s.score, reverse=True)


def get_contract_categories(title: str, description: str, max_categories: int = 2) -> list[str]:
    return [
        s.category
        for s in analyze_contract_description(title, description)
        if s.score >= MIN_CATEGORY_SCORE
    ][:max_categories]
