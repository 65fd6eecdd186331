"""Search services.

Import the service modules directly (``unified_search.services.search_service``);
this package stays import-light because the schemas depend on its exceptions.
"""
