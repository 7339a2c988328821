import json
from unittest import skipUnless
from unittest.mock import patch

from django import forms
from django.core.exceptions import ImproperlyConfigured
from django.db import connection
from django.test import SimpleTestCase, TestCase, override_settings
from django.urls import reverse

from articles.models import Article, Category
from listings.formatters import FORMATTERS, register_formatter
from listings.forms import FilterOptionsForm
from listings.options import merge_options
from listings.registry import Listing, registry
from .conf import app_settings
from .filters import AutocompleteFilter, AUTOCOMPLETE_CLASS, DEPENDENT_CLASS, NO_FIELDS_PLACEHOLDER
from .options import AutocompleteOptions
from .suggestions import MAPPING, Suggestion, serialize

LISTING = "ac_test"

FIELDS = {
    "title": {"field": "title", "label": "Title", "formatter": "emphasis"},
    "summary": {"field": "summary", "label": "Summary"},
    "category": {"field": "category__name", "label": "Category"},
    "author_name": {"field": "author_name", "label": "Author"},
}


def title_filter(**expose):
    options = {
        "identifier": "title",
        "label": "Title",
        "autocomplete_filter": True,
        "autocomplete_field": "title",
    }
    options.update(expose)
    return {"plugin": "autocomplete_string", "field": "title", "exposed": True, "expose": options}


def wrapped(label):
    return f'<div class="reference-autocomplete">{label}</div>'


class AutocompleteTestCase(TestCase):
    @classmethod
    def setUpTestData(cls):
        news = Category.objects.create(name="News", slug="news")
        sport = Category.objects.create(name="Sport", slug="sport")
        Article.objects.create(title="Blue Fish", slug="blue-fish", summary="A fish that swims",
                               author_name="Ann Lee", category=news)
        Article.objects.create(title="Bluebird", slug="bluebird", summary="A small bird",
                               author_name="Bob Stone", category=news)
        Article.objects.create(title="Deep Blue", slug="deep-blue", summary="Chess computer",
                               author_name="Ann Lee", category=sport)
        Article.objects.create(title="Fish & Chips", slug="fish-chips", summary="Fried classic",
                               author_name="Cy Young")
        Article.objects.create(title="Red Herring", slug="red-herring", summary="A misleading clue",
                               author_name="Cy Young", category=sport)

    def setUp(self):
        self.addCleanup(registry.unregister, LISTING)

    def register(self, filters, fields=FIELDS, **default):
        display = {
            "fields": fields,
            "filters": filters,
            "sorts": ("title",),
            "pager": {"type": "full", "options": {"items_per_page": 2}},
        }
        display.update(default)
        registry.unregister(LISTING)
        return registry.register(Listing(
            name=LISTING,
            queryset=Article.objects.all(),
            displays={"default": display, "page": {}},
        ))

    def url(self, filter_name="title", display="page", args="", legacy=False):
        name = "autocomplete_filters:autocomplete-legacy" if legacy else "autocomplete_filters:autocomplete"
        kwargs = {"filter_name": filter_name, "view_name": LISTING, "view_display": display}
        if args:
            name += "-args"
            kwargs["view_args"] = args
        return reverse(name, kwargs=kwargs)

    def suggest(self, q, **kwargs):
        params = kwargs.pop("params", {})
        response = self.client.get(self.url(**kwargs), {"q": q, **params})
        self.assertEqual(response.status_code, 200)
        return response.json()

    @staticmethod
    def values(body):
        return [entry["value"] for entry in body]


class AutocompleteOptionsTestCase(AutocompleteTestCase):
    def handler(self, config, filter_id="title"):
        self.register({filter_id: config})
        run = registry.get_listing(LISTING)
        run.set_display("page")
        return run.get_handler("filter", filter_id)

    def test_defaults_are_added_to_expose(self):
        handler = self.handler({"plugin": "autocomplete_string", "field": "title", "exposed": True,
                                "expose": {"autocomplete_items": 5}})
        expose = handler.options["expose"]

        self.assertIsInstance(handler, AutocompleteFilter)
        self.assertEqual(expose["autocomplete_items"], 5)
        self.assertEqual(expose["autocomplete_min_chars"], 1)
        self.assertFalse(expose["autocomplete_filter"])
        self.assertTrue(expose["autocomplete_raw_suggestion"])
        self.assertTrue(expose["autocomplete_raw_dropdown"])
        self.assertFalse(expose["autocomplete_dependent"])
        self.assertEqual(expose["autocomplete_field"], "")
        self.assertEqual(expose["identifier"], "title")
        self.assertEqual(handler.options["operator"], "contains")

    def test_define_options_is_idempotent(self):
        handler = self.handler(title_filter())

        self.assertEqual(handler.define_options(), handler.define_options())
        self.assertEqual(merge_options(handler.define_options(), handler.options), handler.options)

    def test_wrapper_shares_options_with_base(self):
        handler = self.handler(title_filter(autocomplete_min_chars=3))

        self.assertIs(handler.base.options, handler.options)
        self.assertEqual(handler.identifier, "title")
        self.assertTrue(handler.is_exposed())
        self.assertEqual(handler.autocomplete.min_chars, 3)

    def test_fulltext_variant_keeps_combined_fields(self):
        handler = self.handler({"plugin": "autocomplete_fulltext", "fields": ["title", "summary"],
                                "exposed": True}, filter_id="search")

        self.assertEqual(handler.combined_fields, ("title", "summary"))
        self.assertEqual(handler.options["operator"], "and")

    def test_pager_from_items(self):
        self.assertEqual(AutocompleteOptions.from_expose({"autocomplete_items": 0}).pager["type"], "none")
        pager = AutocompleteOptions.from_expose({"autocomplete_items": "7"}).pager
        self.assertEqual(pager, {"type": "some", "options": {"items_per_page": 7, "offset": 0}})


class OptionsFormTestCase(AutocompleteTestCase):
    def form(self, config, filter_id="title", fields=FIELDS, data=None):
        self.register({filter_id: config}, fields=fields)
        run = registry.get_listing(LISTING)
        run.set_display("page")
        return FilterOptionsForm(run.get_handler("filter", filter_id), data=data)

    def test_field_choices_share_the_filter_model_field(self):
        fields = dict(FIELDS, title_copy={"field": "title"})
        form = self.form(title_filter(autocomplete_field=""), fields=fields)

        self.assertEqual(form.fields["autocomplete_field"].choices, [("title", "Title"), ("title_copy", "Title copy")])
        self.assertEqual(form.fields["autocomplete_field"].initial, "title")

    def test_configured_field_is_kept_as_initial(self):
        fields = dict(FIELDS, title_copy={"field": "title"})
        form = self.form(title_filter(autocomplete_field="title_copy"), fields=fields)

        self.assertEqual(form.fields["autocomplete_field"].initial, "title_copy")

    def test_fulltext_choices_cover_every_searched_field(self):
        fields = dict(FIELDS, title_copy={"field": "title"})
        form = self.form({"plugin": "autocomplete_fulltext", "fields": ["title", "summary"], "exposed": True},
                         filter_id="search", fields=fields)

        choice_ids = [choice_id for choice_id, label in form.fields["autocomplete_field"].choices]
        self.assertEqual(choice_ids, ["title", "summary", "title_copy"])

    def test_placeholder_when_no_field_matches(self):
        form = self.form({"plugin": "autocomplete_string", "field": "body", "exposed": True}, filter_id="body")

        self.assertEqual(form.fields["autocomplete_field"].choices, [("", NO_FIELDS_PLACEHOLDER)])

    def test_no_autocomplete_controls_on_hidden_filter(self):
        form = self.form({"plugin": "autocomplete_string", "field": "title"})

        self.assertNotIn("autocomplete_filter", form.fields)
        self.assertIn("operator", form.fields)

    def test_controls_are_gated_on_the_enable_checkbox(self):
        form = self.form(title_filter())

        self.assertNotIn("data-states", form.fields["autocomplete_filter"].widget.attrs)
        for name in ("autocomplete_items", "autocomplete_min_chars", "autocomplete_dependent",
                     "autocomplete_field", "autocomplete_raw_dropdown", "autocomplete_raw_suggestion"):
            with self.subTest(name=name):
                rule = json.loads(form.fields[name].widget.attrs["data-states"])
                self.assertEqual(rule, {"visible": {':input[name="autocomplete_filter"]': {"checked": True}}})

    def test_cleaned_options(self):
        form = self.form(title_filter(), data={
            "operator": "contains", "value": "", "exposed": "on",
            "identifier": "title", "label": "Title",
            "autocomplete_filter": "on", "autocomplete_items": "5", "autocomplete_min_chars": "2",
            "autocomplete_field": "title",
        })

        self.assertTrue(form.is_valid(), form.errors)
        expose = form.cleaned_options()["expose"]
        self.assertTrue(expose["autocomplete_filter"])
        self.assertEqual(expose["autocomplete_items"], 5)
        self.assertEqual(expose["autocomplete_min_chars"], 2)
        self.assertFalse(expose["autocomplete_raw_dropdown"])
        self.assertFalse(expose["autocomplete_dependent"])


class ExposedFormTestCase(AutocompleteTestCase):
    def run_for(self, filters, args=None):
        self.register(filters)
        run = registry.get_listing(LISTING)
        run.set_display("page")
        if args:
            run.set_arguments(args)
        return run

    def test_text_widget_gets_autocomplete_attributes(self):
        run = self.run_for({"title": title_filter()})
        widget = run.build_exposed_form().fields["title"].widget

        self.assertEqual(widget.attrs["data-autocomplete-path"], f"/autocomplete_filter/title/{LISTING}/page/")
        self.assertEqual(widget.attrs["data-autocomplete-args"], "")
        self.assertIn(AUTOCOMPLETE_CLASS, widget.attrs["class"].split())
        self.assertNotIn(DEPENDENT_CLASS, widget.attrs["class"].split())
        self.assertEqual(run.assets.scripts, [app_settings.AUTOCOMPLETE_SCRIPT])

    def test_arguments_are_joined(self):
        run = self.run_for({"title": title_filter()}, args=["news", "2024"])
        widget = run.build_exposed_form().fields["title"].widget

        self.assertEqual(widget.attrs["data-autocomplete-args"], "news||2024")

    def test_dependent_filter_adds_script_after_base(self):
        run = self.run_for({"title": title_filter(autocomplete_dependent=True)})
        run.build_exposed_form()
        form = run.build_exposed_form()
        widget = form.fields["title"].widget

        self.assertIn(DEPENDENT_CLASS, widget.attrs["class"].split())
        self.assertEqual(run.assets.scripts, [app_settings.AUTOCOMPLETE_SCRIPT, app_settings.DEPENDENT_SCRIPT])
        media = str(form.media + run.assets.media)
        self.assertLess(media.index(app_settings.AUTOCOMPLETE_SCRIPT), media.index(app_settings.DEPENDENT_SCRIPT))

    def test_disabled_autocomplete_leaves_widget_alone(self):
        run = self.run_for({"title": title_filter(autocomplete_filter=False)})
        widget = run.build_exposed_form().fields["title"].widget

        self.assertNotIn("data-autocomplete-path", widget.attrs)
        self.assertEqual(run.assets.scripts, [])

    def test_non_text_widget_is_left_alone(self):
        run = self.run_for({"title": title_filter()})
        handler = run.get_handler("filter", "title")
        form = forms.Form()
        form.fields["title"] = forms.ChoiceField(choices=[("a", "A")])
        handler.value_form(form, exposed=True)

        self.assertNotIn("data-autocomplete-path", form.fields["title"].widget.attrs)
        self.assertEqual(run.assets.scripts, [])

    def test_not_exposed_call_is_ignored(self):
        run = self.run_for({"title": title_filter()})
        handler = run.get_handler("filter", "title")
        form = forms.Form()
        form.fields["title"] = forms.CharField()
        handler.value_form(form, exposed=False)

        self.assertNotIn("data-autocomplete-path", form.fields["title"].widget.attrs)


class AutocompleteEndpointTestCase(AutocompleteTestCase):
    def test_suggestions_match_case_insensitive_substring(self):
        self.register({"title": title_filter()})
        body = self.suggest("blue")

        self.assertEqual(body, [
            {"value": "Blue Fish", "label": wrapped("Blue Fish")},
            {"value": "Bluebird", "label": wrapped("Bluebird")},
            {"value": "Deep Blue", "label": wrapped("Deep Blue")},
        ])

    def test_items_limit_suggestion_rows(self):
        cases = [(0, ["Blue Fish", "Bluebird", "Deep Blue"]), (2, ["Blue Fish", "Bluebird"])]
        for items, expected in cases:
            with self.subTest(items=items):
                self.register({"title": title_filter(autocomplete_items=items)})
                self.assertEqual(self.values(self.suggest("BLUE")), expected)

    def test_rows_without_matching_value_are_skipped(self):
        self.register({"title": title_filter(autocomplete_field="summary")})
        body = self.suggest("blue")

        self.assertEqual(len(body), 1)
        self.assertEqual(body[0]["value"], "")
        self.assertIn("return no results", body[0]["label"])

    def test_no_results_entry(self):
        self.register({"title": title_filter()})
        body = self.suggest("zzz")

        self.assertEqual(body, [{
            "value": "",
            "label": wrapped('The <em class="placeholder">zzz</em> return no results. Please try something else.'),
        }])

    def test_short_input_answers_without_querying(self):
        self.register({"title": title_filter(autocomplete_min_chars=3)})
        for q in ("", "  bl "):
            with self.subTest(q=q), self.assertNumQueries(0):
                body = self.suggest(q)
            self.assertEqual(len(body), 1)
            self.assertEqual(body[0]["value"], "")
            self.assertIn("should have at least", body[0]["label"])
            self.assertIn('<em class="placeholder">3</em>', body[0]["label"])

    def test_short_input_is_escaped_in_message(self):
        self.register({"title": title_filter(autocomplete_min_chars=5)})
        label = self.suggest("<b>")[0]["label"]

        self.assertIn("&lt;b&gt;", label)
        self.assertNotIn("<b>", label)

    def test_special_characters(self):
        self.register({"title": title_filter()})
        body = self.suggest("chips")

        self.assertEqual(body, [{"value": "Fish & Chips", "label": wrapped("Fish &amp; Chips")}])

    def test_raw_and_rendered_toggles(self):
        cases = [
            (True, True, "Blue Fish", wrapped("Blue Fish")),
            (False, True, "<em>Blue Fish</em>", wrapped("Blue Fish")),
            (True, False, "Blue Fish", wrapped("<em>Blue Fish</em>")),
            (False, False, "<em>Blue Fish</em>", wrapped("<em>Blue Fish</em>")),
        ]
        for raw_suggestion, raw_dropdown, value, label in cases:
            with self.subTest(raw_suggestion=raw_suggestion, raw_dropdown=raw_dropdown):
                self.register({"title": title_filter(autocomplete_raw_suggestion=raw_suggestion,
                                                     autocomplete_raw_dropdown=raw_dropdown)})
                self.assertEqual(self.suggest("blue fish"), [{"value": value, "label": label}])

    def test_field_named_after_filter_is_read_raw(self):
        self.register({"title": title_filter(autocomplete_field="", autocomplete_raw_suggestion=False,
                                             autocomplete_raw_dropdown=False)})

        self.assertEqual(self.suggest("blue fish"), [{"value": "Blue Fish", "label": wrapped("Blue Fish")}])

    def test_fulltext_scans_every_combined_field(self):
        self.register({"search": {
            "plugin": "autocomplete_fulltext", "fields": ["title", "summary"], "exposed": True,
            "expose": {"identifier": "search", "autocomplete_filter": True},
        }})

        body = self.suggest("fish", filter_name="search")
        self.assertEqual(self.values(body), ["Blue Fish", "A fish that swims", "Fish & Chips"])
        self.assertEqual(body[2]["label"], wrapped("Fish &amp; Chips"))

    def test_missing_field_is_logged(self):
        self.register({"title": title_filter(autocomplete_field="nonexistent")})
        with self.assertLogs("autocomplete_filters.views", level="WARNING") as logs:
            body = self.suggest("blue")

        self.assertEqual(body, [])
        self.assertEqual(len(logs.output), 1)
        self.assertIn("nonexistent", logs.output[0])

    def test_unset_field_is_logged(self):
        self.register({"headline": {
            "plugin": "autocomplete_string", "field": "title", "exposed": True,
            "expose": {"identifier": "headline", "autocomplete_filter": True},
        }})
        with self.assertLogs("autocomplete_filters.views", level="WARNING"):
            body = self.suggest("blue", filter_name="headline")

        self.assertEqual(body, [])

    def test_unavailable_filters_are_not_found(self):
        cases = {
            "disabled": title_filter(autocomplete_filter=False),
            "hidden": {"plugin": "autocomplete_string", "field": "title",
                       "expose": {"autocomplete_filter": True}},
            "plain": {"plugin": "string", "field": "title", "exposed": True},
        }
        for case, config in cases.items():
            with self.subTest(case=case):
                self.register({"title": config})
                response = self.client.get(self.url(), {"q": "blue"})
                self.assertEqual(response.status_code, 404)

    def test_unknown_filter_listing_or_display(self):
        self.register({"title": title_filter()})
        urls = [
            self.url(filter_name="nope"),
            self.url(display="feed"),
            reverse("autocomplete_filters:autocomplete",
                    kwargs={"filter_name": "title", "view_name": "nope", "view_display": "page"}),
        ]
        for url in urls:
            with self.subTest(url=url):
                self.assertEqual(self.client.get(url, {"q": "blue"}).status_code, 404)

    def test_dependent_filter_uses_other_exposed_input(self):
        filters = {
            "title": title_filter(autocomplete_dependent=True),
            "category": {"field": "category__name", "exposed": True, "expose": {"identifier": "category"}},
        }
        self.register(filters)

        self.assertEqual(self.values(self.suggest("blue", params={"category": "sport"})), ["Deep Blue"])
        # the typed text always wins over a stale value of the filter itself
        self.assertEqual(len(self.suggest("blue", params={"title": "zzz"})), 3)

    def test_independent_filter_ignores_other_exposed_input(self):
        filters = {
            "title": title_filter(),
            "category": {"field": "category__name", "exposed": True, "expose": {"identifier": "category"}},
        }
        self.register(filters)

        self.assertEqual(self.values(self.suggest("blue", params={"category": "sport"})),
                         ["Blue Fish", "Bluebird", "Deep Blue"])

    def test_missing_arguments_never_block_suggestions(self):
        self.register({"title": title_filter(autocomplete_items=0)},
                      arguments={"category": {"field": "category__slug", "default_action": "not found"}})

        self.assertEqual(self.values(self.suggest("blue")), ["Blue Fish", "Bluebird", "Deep Blue"])
        self.assertEqual(self.values(self.suggest("blue", args="news")), ["Blue Fish", "Bluebird"])

    def test_every_argument_in_the_path_narrows_rows(self):
        self.register({"title": title_filter(autocomplete_items=0)}, arguments={
            "category": {"field": "category__slug"},
            "author": {"field": "author_name"},
        })

        self.assertEqual(self.values(self.suggest("blue", args="news||Ann Lee")), ["Blue Fish"])
        self.assertEqual(self.values(self.suggest("blue", args="sport||Ann Lee")), ["Deep Blue"])
        self.assertEqual(self.values(self.suggest("blue", args="all||Ann Lee")), ["Blue Fish", "Deep Blue"])

    def test_empty_dropdown_text_is_skipped(self):
        register_formatter("blank", lambda items, row, settings: "")
        self.addCleanup(FORMATTERS.pop, "blank")
        fields = dict(FIELDS, title={"field": "title", "label": "Title", "formatter": "blank"})
        self.register({"title": title_filter(autocomplete_raw_dropdown=False)}, fields=fields)

        body = self.suggest("blue")
        self.assertEqual(len(body), 1)
        self.assertEqual(body[0]["value"], "")
        self.assertIn("return no results", body[0]["label"])

    @skipUnless(connection.vendor == "postgresql", "SQLite LIKE folds case for ASCII only")
    def test_non_ascii_case_folding(self):
        Article.objects.create(title="Über Blau", slug="uber-blau")
        self.register({"title": title_filter()})

        self.assertEqual(self.values(self.suggest("über")), ["Über Blau"])

    def test_cache_is_bypassed_and_listing_untouched(self):
        listing = self.register({"title": title_filter()}, cache={"type": "time", "results_lifespan": 300})
        with patch("listings.executable.cache") as cache:
            self.suggest("blue")

        cache.get.assert_not_called()
        cache.set.assert_not_called()
        options = listing.display_options("page")
        self.assertEqual(options.cache["type"], "time")
        self.assertEqual(options.pager["type"], "full")

    def test_legacy_route_answers_with_mapping(self):
        self.register({"author_name": {
            "plugin": "autocomplete_string", "field": "author_name", "exposed": True,
            "expose": {"identifier": "author", "autocomplete_filter": True},
        }})

        self.assertEqual(self.values(self.suggest("ann", filter_name="author_name")), ["Ann Lee", "Ann Lee"])
        self.assertEqual(self.suggest("ann", filter_name="author_name", legacy=True), {"Ann Lee": wrapped("Ann Lee")})

    @override_settings(AUTOCOMPLETE_FILTERS={"RESPONSE_FORMAT": MAPPING})
    def test_response_format_setting(self):
        self.register({"title": title_filter()})

        self.assertEqual(self.suggest("blue"), {
            "Blue Fish": wrapped("Blue Fish"),
            "Bluebird": wrapped("Bluebird"),
            "Deep Blue": wrapped("Deep Blue"),
        })


class SerializeTestCase(SimpleTestCase):
    def test_mapping_keeps_last_label(self):
        suggestions = [Suggestion("Ann", "first"), Suggestion("Ann", "second")]
        self.assertEqual(serialize(suggestions, MAPPING), {"Ann": wrapped("second")})

    def test_unknown_format(self):
        with self.assertRaises(ImproperlyConfigured):
            serialize([], "xml")
