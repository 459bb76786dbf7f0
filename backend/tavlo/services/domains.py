"""
Knowledge domains: mapping content to a domain and seeding the domain table
"""
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from tavlo.core.cache import reference_cache
from tavlo.core.config import get_settings
from tavlo.core.logging_config import LoggingConfig
from tavlo.models.domain import Domain

logger = LoggingConfig.get_logger(__name__)

DOMAIN_CACHE_KEY = "domains:name_to_id"

# Category from the summarizer -> domain name ("" means no domain)
CATEGORY_TO_DOMAIN: Dict[str, str] = {
    "tech": "technology",
    "productivity": "productivity",
    "design": "creativity",
    "business": "finance",
    "lifestyle": "health",
    "learning": "philosophy",
    "entertainment": "creativity",
    "news": "philosophy",
    "finance": "finance",
    "economics": "finance",
    "philosophy": "philosophy",
    "fashion": "creativity",
    "travel": "health",
    "other": "",
}

# Tag keywords that can override the category mapping
TAG_DOMAIN_KEYWORDS: Dict[str, List[str]] = {
    "finance": [
        "investing", "investment", "stocks", "crypto", "bitcoin", "money", "budgeting",
        "wealth", "financial", "economy", "economics", "trading", "portfolio", "assets",
        "savings", "retirement", "401k", "ira",
    ],
    "career": [
        "career", "job", "interview", "resume", "linkedin", "networking", "salary",
        "promotion", "workplace", "professional", "hiring", "management", "leadership",
        "mentor", "skill",
    ],
    "health": [
        "health", "fitness", "workout", "exercise", "gym", "nutrition", "diet",
        "mental health", "meditation", "sleep", "wellness", "yoga", "running", "weight",
        "muscle",
    ],
    "philosophy": [
        "philosophy", "wisdom", "mindset", "stoic", "thinking", "ethics", "life", "meaning",
        "happiness", "psychology", "cognitive", "bias", "decision",
    ],
    "relationships": [
        "relationship", "dating", "marriage", "family", "social", "communication",
        "friendship", "love", "parenting", "children",
    ],
    "productivity": [
        "productivity", "habit", "routine", "time management", "focus", "efficiency",
        "workflow", "automation", "tools", "notion", "obsidian", "todoist", "calendar",
    ],
    "creativity": [
        "design", "art", "creative", "writing", "music", "photography", "video",
        "animation", "illustration", "ux", "ui", "figma", "adobe", "photoshop",
    ],
    "technology": [
        "programming", "coding", "software", "ai", "machine learning", "web", "app",
        "developer", "javascript", "python", "react", "api", "database", "cloud",
        "startup", "tech",
    ],
}

# Ties go to the domain checked first
DOMAIN_PRIORITY = (
    "technology",
    "finance",
    "productivity",
    "creativity",
    "health",
    "career",
    "philosophy",
    "relationships",
)

DEFAULT_DOMAINS = [
    {
        "name": "finance",
        "display_name": "Finance",
        "description": "Investing, budgeting, wealth building, and financial literacy",
        "icon": "💰",
        "color": "#22c55e",
        "order": 1,
    },
    {
        "name": "career",
        "display_name": "Career",
        "description": "Job skills, networking, professional development, and workplace success",
        "icon": "💼",
        "color": "#3b82f6",
        "order": 2,
    },
    {
        "name": "health",
        "display_name": "Health",
        "description": "Fitness, nutrition, mental health, and overall wellness",
        "icon": "🏃",
        "color": "#ef4444",
        "order": 3,
    },
    {
        "name": "philosophy",
        "display_name": "Philosophy",
        "description": "Wisdom, ethics, mindset, and life principles",
        "icon": "🧠",
        "color": "#a855f7",
        "order": 4,
    },
    {
        "name": "relationships",
        "display_name": "Relationships",
        "description": "Social skills, communication, dating, and family dynamics",
        "icon": "❤️",
        "color": "#ec4899",
        "order": 5,
    },
    {
        "name": "productivity",
        "display_name": "Productivity",
        "description": "Systems, habits, time management, and efficiency",
        "icon": "⚡",
        "color": "#f59e0b",
        "order": 6,
    },
    {
        "name": "creativity",
        "display_name": "Creativity",
        "description": "Art, writing, design, and creative expression",
        "icon": "🎨",
        "color": "#06b6d4",
        "order": 7,
    },
    {
        "name": "technology",
        "display_name": "Technology",
        "description": "Programming, AI, tools, and tech innovation",
        "icon": "💻",
        "color": "#6366f1",
        "order": 8,
    },
]


def _keyword_score(tag: str, keyword: str) -> int:
    if tag == keyword:
        return 3
    if tag.startswith(keyword + " ") or tag.endswith(" " + keyword):
        return 2
    if f" {keyword} " in tag:
        return 1
    return 0


def get_domain_from_tags(tags: Iterable[str]) -> Optional[str]:
    """
    Best matching domain name for a set of tags, or None.

    Exact keyword matches score 3, a keyword at the start or end of a
    multi-word tag scores 2, and a keyword in the middle scores 1.
    """
    normalized = [t.lower().strip() for t in tags or [] if isinstance(t, str)]
    best_domain = None
    best_score = 0
    for domain_name in DOMAIN_PRIORITY:
        score = sum(
            _keyword_score(tag, keyword)
            for keyword in TAG_DOMAIN_KEYWORDS[domain_name]
            for tag in normalized
        )
        if score > best_score:
            best_domain, best_score = domain_name, score
    return best_domain


def get_domain_map(db: Session) -> Dict[str, UUID]:
    """name -> id for all domains, cached"""
    return reference_cache.get_or_set(
        DOMAIN_CACHE_KEY,
        lambda: {name: domain_id for domain_id, name in db.query(Domain.id, Domain.name).all()},
        ttl=get_settings().domain_cache_ttl_seconds,
    )


def get_domain_id(db: Session, domain_name: Optional[str]) -> Optional[UUID]:
    if not domain_name:
        return None
    return get_domain_map(db).get(domain_name)


def get_domain_for_content(db: Session, category: Optional[str], tags: Iterable[str]) -> Optional[UUID]:
    """Domain id for an item: tag keywords first, then the category mapping"""
    domain_id = get_domain_id(db, get_domain_from_tags(tags))
    if domain_id:
        return domain_id
    if category:
        return get_domain_id(db, CATEGORY_TO_DOMAIN.get(category.lower()))
    return None


def clear_domain_cache():
    reference_cache.delete(DOMAIN_CACHE_KEY)


def list_domains(db: Session) -> List[Domain]:
    return db.query(Domain).order_by(Domain.order.asc()).all()


def seed_domains(db: Session) -> int:
    """Insert or update DEFAULT_DOMAINS; returns the number of new rows"""
    created = 0
    for data in DEFAULT_DOMAINS:
        domain = db.query(Domain).filter(Domain.name == data["name"]).first()
        if domain is None:
            db.add(Domain(**data))
            created += 1
            logger.info(f"Creating domain {data['name']}")
        else:
            for key, value in data.items():
                setattr(domain, key, value)
    db.commit()
    clear_domain_cache()
    return created
