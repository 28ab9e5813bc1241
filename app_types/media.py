from enum import Enum

class TitleType(str, Enum):
    MOVIE = "movie"
    TV = "tv"

class ResourceKind(str, Enum):
    DETAIL = "detail"
    TITLE_CARD = "card"
