from rest_framework.pagination import PageNumberPagination


class StandardResultsSetPagination(PageNumberPagination):
    """Page-numbered lists for items, movements, sessions and audit logs.

    ``?page_size=`` overrides the default of ``PAGE_SIZE`` up to 200 rows.
    Master-data lists (locations, categories, sizes) are returned whole.
    """

    page_size_query_param = "page_size"
    max_page_size = 200
