"""Pure text heuristics shared by record normalization and fallback extraction."""

from __future__ import annotations

import re
from collections import Counter
from datetime import date, datetime, timedelta

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")
_WORD = re.compile(r"[A-Za-z][A-Za-z\-]{3,}")

_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("DevOps", ("devops", "docker", "kubernetes", "jenkins", "ci/cd", "deployment",
                "infrastructure", "monitoring", "ansible", "terraform", "pipeline")),
    ("Programming", ("javascript", "python", "java", "react", "node", "coding",
                     "programming", "algorithm", "function", "variable", "class", "method")),
    ("Data Science", ("machine learning", "data science", "pandas", "numpy", "statistics",
                      "analysis", "dataset", "model", "prediction", "ml")),
    ("Web Development", ("html", "css", "frontend", "backend", "web development",
                         "bootstrap", "responsive", "api", "rest", "http")),
    ("Database", ("sql", "database", "mysql", "postgresql", "mongodb", "query", "table",
                  "index", "relationship", "orm")),
    ("Cloud Computing", ("aws", "azure", "cloud", "serverless", "lambda", "ec2", "s3",
                         "cloud computing", "gcp")),
    ("Cybersecurity", ("security", "encryption", "vulnerability", "penetration", "firewall",
                       "authentication", "cybersecurity", "ssl")),
    ("Mathematics", ("math", "calculus", "algebra", "geometry", "statistics", "equation",
                     "theorem", "proof", "formula")),
    ("Physics", ("physics", "mechanics", "thermodynamics", "electromagnetism", "quantum",
                 "force", "energy", "motion")),
    ("Chemistry", ("chemistry", "molecule", "atom", "chemical", "reaction", "element",
                   "compound", "periodic")),
    ("Biology", ("biology", "cell", "organism", "genetics", "evolution", "ecosystem",
                 "anatomy", "dna", "photosynthesis")),
    ("Business", ("business", "management", "marketing", "finance", "economics", "strategy",
                  "leadership", "sales")),
    ("History", ("history", "historical", "ancient", "medieval", "war", "civilization",
                 "culture", "empire")),
    ("Literature", ("literature", "novel", "poetry", "author", "book", "writing", "literary",
                    "poem")),
    ("Language", ("language", "grammar", "vocabulary", "linguistics", "translation",
                  "speaking", "english")),
)

_STUDY_TAGS = (
    "tutorial", "guide", "reference", "examples", "documentation", "beginner", "advanced",
    "practical", "theory", "concepts", "fundamentals", "tips", "best practices",
    "troubleshooting", "configuration", "setup",
)

_STOPWORDS = frozenset(
    """
    about above after again against also because been before being below between both
    could does doing down during each every from further have having here itself just
    more most much must only other over same should some such than that their theirs
    them themselves then there these they this those through under until very were what
    when where which while whom will with would your yours into onto upon used using
    within without page
    """.split()
)

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
_DAY_ALIASES = {
    "mon": "Monday", "tue": "Tuesday", "tues": "Tuesday", "wed": "Wednesday",
    "thu": "Thursday", "thur": "Thursday", "thurs": "Thursday", "fri": "Friday",
    "sat": "Saturday", "sun": "Sunday",
}

MONTHS = {
    "january": 1, "february": 2, "march": 3, "april": 4, "may": 5, "june": 6, "july": 7,
    "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "jun": 6, "jul": 7, "aug": 8, "sep": 9,
    "sept": 9, "oct": 10, "nov": 11, "dec": 12,
}

_MONTH_NAMES = "|".join(sorted(MONTHS, key=len, reverse=True))
DATE_TOKEN = re.compile(
    rf"\b(?:(?P<month>{_MONTH_NAMES})\.?\s+(?P<day>\d{{1,2}})(?:st|nd|rd|th)?"
    rf"(?:,?\s+(?P<year>\d{{4}}))?"
    r"|(?P<us>\d{1,2}/\d{1,2}/\d{2,4})"
    r"|(?P<iso>\d{4}-\d{2}-\d{2}))\b",
    flags=re.IGNORECASE,
)

TIME_TOKEN = re.compile(
    r"\b(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?\s*(?P<marker>[ap]\.?\s?m\.?)?(?![\w:])",
    flags=re.IGNORECASE,
)


def split_sentences(text: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_SPLIT.split(text) if part.strip()]


def detect_category(content: str, source: str = "", suggested: str | None = None) -> str:
    """Pick the best-matching subject; longer keyword matches weigh more."""

    if suggested and suggested.strip() and suggested.strip().lower() != "general":
        return suggested.strip()

    text = f"{content} {source}".lower()
    best_name, best_score = "General", 0
    for name, keywords in _CATEGORY_KEYWORDS:
        score = sum(
            len(keyword)
            for keyword in keywords
            if re.search(rf"(?<![a-z]){re.escape(keyword)}(?![a-z])", text)
        )
        if score > best_score:
            best_name, best_score = name, score
    return best_name


def extract_keywords(text: str, limit: int = 5) -> list[str]:
    """Most frequent non-stopword terms, ties broken by first appearance."""

    words = [word.lower() for word in _WORD.findall(text)]
    words = [word for word in words if word not in _STOPWORDS]
    counts = Counter(words)
    first_seen = {}
    for position, word in enumerate(words):
        first_seen.setdefault(word, position)
    ranked = sorted(counts, key=lambda word: (-counts[word], first_seen[word]))
    return ranked[:limit]


def extract_tags(content: str, source: str = "", limit: int = 5) -> list[str]:
    """Known study tags found in the text, then frequent keywords; deduplicated."""

    text = f"{content} {source}".lower()
    tags = [tag for tag in _STUDY_TAGS if tag in text]
    suffix = source.rsplit(".", 1)[-1].lower() if "." in source else ""
    if suffix in {"pdf", "txt", "md"}:
        tags.append({"pdf": "pdf", "txt": "text", "md": "markdown"}[suffix])
    tags.extend(extract_keywords(content, limit=limit))
    return dedupe(tags)[:limit]


def dedupe(values: list[str]) -> list[str]:
    seen: set[str] = set()
    output: list[str] = []
    for value in values:
        cleaned = value.strip()
        key = cleaned.lower()
        if not cleaned or key in seen:
            continue
        seen.add(key)
        output.append(cleaned)
    return output


def normalize_time(value: str | None) -> str | None:
    """Convert a clock time to 24-hour `HH:MM`.

    `2:30 PM` -> `14:30`, `12:15 AM` -> `00:15`, `9:00` -> `09:00`, `3pm` -> `15:00`.
    Returns None when no valid time is present.
    """

    if not value:
        return None
    match = TIME_TOKEN.search(value.strip())
    if match is None:
        return None
    return clock_time(match.group("hour"), match.group("minute"), match.group("marker"))


def clock_time(hour_text: str, minute_text: str | None, marker: str | None) -> str | None:
    hour = int(hour_text)
    minute = int(minute_text) if minute_text else 0
    if marker:
        meridiem = marker.lower().replace(".", "").replace(" ", "")
        if not 1 <= hour <= 12:
            return None
        if meridiem == "am":
            hour = 0 if hour == 12 else hour
        else:
            hour = hour if hour == 12 else hour + 12
    if hour > 23 or minute > 59:
        return None
    return f"{hour:02d}:{minute:02d}"


def normalize_day(value: str | None) -> str | None:
    if not value:
        return None
    key = value.strip().lower().rstrip(".")
    for day in WEEKDAYS:
        if key == day.lower():
            return day
    return _DAY_ALIASES.get(key)


def parse_date_token(text: str, today: date) -> date | None:
    """Return the first recognizable calendar date in `text`."""

    for match in DATE_TOKEN.finditer(text):
        parsed = _date_from_match(match, today)
        if parsed is not None:
            return parsed
    return None


def _date_from_match(match: re.Match[str], today: date) -> date | None:
    try:
        if match.group("iso"):
            return datetime.strptime(match.group("iso"), "%Y-%m-%d").date()
        if match.group("us"):
            raw = match.group("us")
            fmt = "%m/%d/%Y" if len(raw.rsplit("/", 1)[-1]) == 4 else "%m/%d/%y"
            return datetime.strptime(raw, fmt).date()
        month = MONTHS[match.group("month").lower()]
        year = int(match.group("year")) if match.group("year") else today.year
        return date(year, month, int(match.group("day")))
    except ValueError:
        return None


def normalize_date(value: str | None, today: date) -> str:
    """ISO date for `value`, or one week from `today` when unrecognizable."""

    if value:
        parsed = parse_date_token(value, today)
        if parsed is not None:
            return parsed.isoformat()
    return (today + timedelta(days=7)).isoformat()
