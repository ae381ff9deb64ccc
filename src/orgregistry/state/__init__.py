from orgregistry.state.query import (  # noqa: F401
    SEARCH_FIELDS,
    CacheKey,
    QueryState,
    QueryStateStore,
)
