"""
Search UI label lookup
"""

from typing import Dict, NamedTuple, Optional

DEFAULT_LANGUAGE = "en"


class SearchLabels(NamedTuple):
    placeholder: str
    searching: str
    no_results: str


SEARCH_LABELS: Dict[str, SearchLabels] = {
    "en": SearchLabels("Search any city or location worldwide...", "Searching...", "No results found"),
    "es": SearchLabels("Buscar cualquier ciudad o lugar...", "Buscando...", "No se encontraron resultados"),
    "fr": SearchLabels("Rechercher une ville ou un lieu...", "Recherche...", "Aucun résultat trouvé"),
    "de": SearchLabels("Suche nach Stadt oder Ort...", "Suche...", "Keine Ergebnisse gefunden"),
    "zh": SearchLabels("搜索任何城市或地点...", "搜索中...", "未找到结果"),
    "ja": SearchLabels("都市や場所を検索...", "検索中...", "結果が見つかりません"),
    "ar": SearchLabels("ابحث عن أي مدينة أو موقع...", "جاري البحث...", "لا توجد نتائج"),
    "ko": SearchLabels("도시나 장소를 검색하세요...", "검색 중...", "결과가 없습니다"),
    "ru": SearchLabels("Поиск города или места...", "Поиск...", "Ничего не найдено"),
}


def labels_for(language: Optional[str]) -> SearchLabels:
    """Labels for a language code, English when the language has no table."""
    if language:
        labels = SEARCH_LABELS.get(language.lower())
        if labels is not None:
            return labels
    return SEARCH_LABELS[DEFAULT_LANGUAGE]
