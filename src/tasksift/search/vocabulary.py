"""Stop words, generic query vocabulary and CJK text helpers."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Sequence

logger = logging.getLogger(__name__)

CJK_REGEX = re.compile(r"[\u4e00-\u9fff\u3400-\u4dbf\uf900-\ufaff\u3040-\u309f\u30a0-\u30ff]")

# Words that carry no topic of their own: question words, generic verbs,
# modal verbs and generic nouns. A query made mostly of these is vague.
GENERIC_QUERY_WORDS = frozenset(
    {
        # English
        "what", "when", "where", "which", "how", "why", "who", "whom", "whose",
        "do", "does", "did", "doing", "done", "make", "makes", "made", "making",
        "work", "works", "worked", "working", "get", "gets", "got", "getting",
        "go", "goes", "went", "going", "come", "comes", "came", "coming",
        "take", "takes", "took", "taking", "give", "gives", "gave", "giving",
        "show", "list", "find", "see", "look",
        "should", "could", "would", "might", "must", "can", "may", "shall", "will",
        "need", "needs", "needed", "needing", "have", "has", "had", "having",
        "want", "wants", "wanted", "wanting",
        "task", "tasks", "item", "items", "thing", "things", "job", "jobs",
        "stuff", "matter", "matters", "issue", "issues", "problem", "problems",
        "todos",
        # Chinese
        "什么", "怎么", "哪里", "哪个", "为什么", "怎样", "谁", "哪", "何",
        "做", "可以", "能", "应该", "需要", "有", "要", "干", "搞", "弄", "办",
        "处理", "任务", "事情", "东西", "工作", "活", "问题", "事", "事儿",
        # Swedish
        "vad", "när", "var", "vilken", "vilka", "vilket", "hur", "varför", "vem",
        "vems", "göra", "gör", "gjorde", "gjort", "arbeta", "arbetar", "arbetade",
        "ta", "tar", "tog", "tagit", "kan", "kunde", "kunnat", "ska", "skulle",
        "behöver", "behövde", "behövt", "har", "hade", "haft", "vill", "ville",
        "velat", "uppgift", "uppgifter", "sak", "saker", "arbete", "jobb", "ärende",
        # German
        "was", "wann", "wo", "welche", "welcher", "welches", "wie", "warum", "wer",
        "wessen", "machen", "macht", "machte", "gemacht", "tun", "tat", "getan",
        "arbeiten", "arbeitete", "gearbeitet", "sollen", "sollte", "können",
        "konnte", "müssen", "musste", "dürfen", "durfte", "aufgabe", "aufgaben",
        "sache", "sachen", "arbeit", "ding", "dinge",
        # Spanish
        "qué", "cuándo", "dónde", "cuál", "cuáles", "cómo", "quién", "quiénes",
        "hacer", "hace", "hizo", "hecho", "trabajar", "trabaja", "trabajó",
        "deber", "debe", "debería", "poder", "puede", "podría", "necesitar",
        "necesita", "tarea", "tareas", "cosa", "cosas", "trabajo", "asunto", "asuntos",
        # French
        "quoi", "que", "quel", "quelle", "quels", "quelles", "quand", "où",
        "comment", "pourquoi", "qui", "faire", "fait", "fais", "font",
        "travailler", "travaille", "travaillé", "devoir", "doit", "devrait",
        "pouvoir", "peut", "pourrait", "falloir", "faut", "faudrait", "tâche",
        "tâches", "chose", "choses", "travail", "affaire", "affaires",
        # Japanese
        "なに", "なん", "いつ", "どこ", "どれ", "どう", "なぜ", "だれ", "する",
        "やる", "できる", "こと", "もの", "タスク", "仕事",
    }
)

INTERNAL_STOP_WORDS = frozenset(
    {
        # English articles, prepositions, pronouns and connectors
        "the", "a", "an", "and", "or", "but", "for", "of", "with", "by", "from",
        "as", "is", "was", "are", "were", "be", "been", "am", "to", "in", "on",
        "at", "about", "into", "that", "this", "these", "those", "it", "its",
        "there", "i", "me", "my", "mine", "we", "our", "us", "you", "your",
        "all", "any", "some", "please",
        # English question words
        "how", "what", "when", "where", "why", "which", "who", "whom", "whose",
        "do", "does", "did", "can", "could", "should", "would", "will",
        "have", "has", "had",
        # Chinese particles and question words
        "我", "我的", "的", "了", "吗", "呢", "啊", "吧", "和", "或", "如何",
        "怎么", "怎样", "什么", "哪些", "哪个", "哪里", "为什么",
    }
)


# Task-plugin priority markers and the levels they stand for.
PRIORITY_EMOJI = {"⏫": 1, "🔼": 2, "🔽": 3, "⏬": 3}
PRIORITY_EMOJI_PATTERN = re.compile("(%s)\ufe0f?" % "|".join(PRIORITY_EMOJI))


def is_cjk(text: str) -> bool:
    """Return True if ``text`` contains any CJK character."""
    return bool(CJK_REGEX.search(text))


def is_stop_word(word: str, extra_stop_words: Iterable[str] = ()) -> bool:
    lowered = word.lower()
    return lowered in INTERNAL_STOP_WORDS or lowered in {
        w.lower() for w in extra_stop_words
    }


def is_generic_word(word: str) -> bool:
    return word.lower() in GENERIC_QUERY_WORDS


def is_filler(word: str, extra_stop_words: Iterable[str] = ()) -> bool:
    """Generic vocabulary or a stop word: contributes no topic to a query."""
    return is_generic_word(word) or is_stop_word(word, extra_stop_words)


def filter_stop_words(
    words: Iterable[str], extra_stop_words: Iterable[str] = ()
) -> List[str]:
    """Drop stop words and single non-CJK characters, keeping order."""
    extra = {w.lower() for w in extra_stop_words}
    kept: List[str] = []
    for word in words:
        if not word:
            continue
        if len(word) == 1 and not is_cjk(word):
            continue
        lowered = word.lower()
        if lowered in INTERNAL_STOP_WORDS or lowered in extra:
            continue
        kept.append(word)
    return kept


def dedupe_keywords(keywords: Sequence[str]) -> List[str]:
    """Remove case-insensitive duplicates and overlapping CJK fragments.

    A CJK keyword contained in a longer kept CJK keyword is dropped. Latin
    keywords are only dropped on exact (case-insensitive) duplicates, since
    "fix" and "prefix" are different words. First-seen order is preserved.
    """
    unique: List[str] = []
    seen = set()
    for keyword in keywords:
        lowered = keyword.lower()
        if lowered and lowered not in seen:
            seen.add(lowered)
            unique.append(lowered)

    by_length = sorted(unique, key=len, reverse=True)
    dropped = set()
    for index, keyword in enumerate(by_length):
        if not is_cjk(keyword):
            continue
        for longer in by_length[:index]:
            if longer not in dropped and is_cjk(longer) and keyword in longer:
                dropped.add(keyword)
                break
    return [keyword for keyword in unique if keyword not in dropped]


# Common misspellings in task queries, corrected before tokenizing.
TYPO_CORRECTIONS = {
    # tasks
    "taks": "task", "tasl": "task", "taskk": "task", "tsak": "task",
    "takss": "tasks", "tassks": "tasks",
    # priority and urgency
    "priorty": "priority", "priortiy": "priority", "priorit": "priority",
    "piority": "priority", "priorites": "priorities", "prioritys": "priorities",
    "urgant": "urgent", "urgnet": "urgent", "urgemt": "urgent", "urget": "urgent",
    "critcal": "critical", "criticla": "critical",
    "importent": "important", "imporant": "important", "imprtant": "important",
    # status
    "opne": "open", "openn": "open", "complated": "completed",
    "compelted": "completed", "copleted": "completed", "compleated": "completed",
    "complet": "complete", "progres": "progress", "proggress": "progress",
    "inprogress": "in progress",
    # dates
    "overdu": "overdue", "overdeu": "overdue", "tommorow": "tomorrow",
    "tommorrow": "tomorrow", "tomorow": "tomorrow", "todya": "today",
    "toady": "today",
    # everyday words
    "paymant": "payment", "payemnt": "payment", "systme": "system",
    "sytem": "system", "sysem": "system", "desing": "design", "desgin": "design",
    "developement": "development", "devlopment": "development",
    "recieve": "receive", "reciept": "receipt", "seperete": "separate",
    "seperately": "separately", "definately": "definitely",
    "occured": "occurred", "occurence": "occurrence",
}
WORD_PATTERN = re.compile(r"[A-Za-z]+")


def _match_case(original: str, correction: str) -> str:
    if original.isupper():
        return correction.upper()
    if original[0].isupper():
        return correction.capitalize()
    return correction


def correct_typos(query: str) -> str:
    """Replace known misspellings with their correction, keeping the case shape."""
    fixed: List[str] = []

    def _replace(match: "re.Match[str]") -> str:
        word = match.group(0)
        correction = TYPO_CORRECTIONS.get(word.lower())
        if correction is None:
            return word
        fixed.append(f"{word}->{correction}")
        return _match_case(word, correction)

    corrected = WORD_PATTERN.sub(_replace, query)
    if fixed:
        logger.debug("typo correction: %s", ", ".join(fixed))
    return corrected
