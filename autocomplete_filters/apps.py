from django.apps import AppConfig


class AutocompleteFiltersConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'autocomplete_filters'

    def ready(self):
        import autocomplete_filters.filters  # registers the autocomplete filter plugins
