"""
Word-cloud extraction from free-text PC build requests.
"""
import re
from collections import Counter
from collections.abc import Iterable

TOKEN_SEPARATORS = re.compile(r"[\s,.!?;:()\[\]{}'\"/\\-]+")
DIGITS = re.compile(r"^\d+$")
BUDGET = re.compile(r"(\d+)\s*(triệu|tr|m|million)", re.IGNORECASE)

VIETNAMESE_STOPWORDS = frozenset({
    "của", "và", "một", "trong", "cho", "với", "các", "là", "để", "có",
    "không", "được", "tại", "những", "này", "khoảng", "từ", "đến",
    "như", "trên", "dưới", "đã", "sẽ", "cần", "phải", "về", "bởi",
    "vì", "nhưng", "vẫn", "rằng", "thì", "làm", "cùng", "nên",
    "theo", "đây", "đó", "nếu", "nào", "sao", "mà", "thế",
    "ai", "sau", "ở", "cả", "đều", "lên", "xuống", "đi", "lại",
})

PURPOSE_TERMS = (
    "gaming",
    "game",
    "chơi",
    "văn phòng",
    "làm việc",
    "đồ họa",
    "thiết kế",
    "stream",
    "học tập",
)


def tokenize(text: str) -> list[str]:
    """Lowercase words of a request, minus stop words, numbers and single letters."""
    return [
        word
        for word in TOKEN_SEPARATORS.split(text.lower())
        if len(word) > 1 and word not in VIETNAMESE_STOPWORDS and not DIGITS.match(word)
    ]


def word_frequencies(texts: Iterable[str]) -> Counter[str]:
    counts: Counter[str] = Counter()
    for text in texts:
        counts.update(tokenize(text))
    return counts


def budget_mention(text: str) -> str | None:
    """First budget in a request, normalised to "<amount> triệu"."""
    match = BUDGET.search(text.lower())
    if match is None:
        return None
    return f"{match.group(1)} triệu"


def purpose_mentions(texts: Iterable[str]) -> Counter[str]:
    """
    Requests mentioning each purpose term (substring match, once per request)
    plus one count per normalised budget.
    """
    counts: Counter[str] = Counter()
    for text in texts:
        lowered = text.lower()
        counts.update(term for term in PURPOSE_TERMS if term in lowered)
        budget = budget_mention(lowered)
        if budget:
            counts[budget] += 1
    return counts
