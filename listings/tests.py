from types import SimpleNamespace

from django import forms
from django.core.cache import cache
from django.core.exceptions import ImproperlyConfigured
from django.http import Http404
from django.test import SimpleTestCase, TestCase, RequestFactory

from articles.models import Article, Category, Tag
from .assets import AssetManifest
from .exceptions import ListingDoesNotExist, DisplayDoesNotExist
from .formatters import get_formatter
from .forms import FilterOptionsForm
from .handlers import FieldItem
from .options import DisplayOptions, merge_options
from .registry import Listing, registry

LISTING = "listing_tests"

FIELDS = {
    "title": {"field": "title", "label": "Title", "formatter": "emphasis"},
    "summary": {"field": "summary", "label": "Summary"},
    "category": {"field": "category__name", "label": "Category"},
    "tags": {"field": "tags", "label": "Tags"},
}


def make_listing(**default):
    display = {
        "title": "Test articles",
        "fields": FIELDS,
        "sorts": ("title",),
        "pager": {"type": "none"},
    }
    display.update(default)
    return Listing(
        name=LISTING,
        queryset=Article.objects.all(),
        displays={"default": display, "page": {}, "teaser": {"pager": {"type": "some", "options": {"items_per_page": 1}}}},
    )


class MergeOptionsTestCase(SimpleTestCase):
    def test_nested_dicts_are_merged(self):
        defaults = {"operator": "contains", "expose": {"identifier": "title", "label": ""}}
        merged = merge_options(defaults, {"expose": {"label": "Title"}})

        self.assertEqual(merged, {"operator": "contains", "expose": {"identifier": "title", "label": "Title"}})
        self.assertEqual(defaults["expose"]["label"], "")

    def test_non_dict_values_replace(self):
        merged = merge_options({"fields": ["a"], "value": ""}, {"fields": ["b", "c"]})
        self.assertEqual(merged, {"fields": ["b", "c"], "value": ""})


class DisplayOptionsTestCase(SimpleTestCase):
    def test_with_option_returns_new_instance(self):
        options = DisplayOptions(pager={"type": "full", "options": {"items_per_page": 10}})
        changed = options.with_option("pager", {"type": "none"})

        self.assertEqual(changed.pager, {"type": "none"})
        self.assertEqual(options.pager["type"], "full")

    def test_get_option_returns_a_copy(self):
        options = DisplayOptions(arguments={"category": {"default_action": "not found"}})
        arguments = options.get_option("arguments")
        arguments["category"]["default_action"] = "ignore"

        self.assertEqual(options.arguments["category"]["default_action"], "not found")

    def test_unknown_option(self):
        with self.assertRaises(KeyError):
            DisplayOptions().get_option("style")

    def test_displays_inherit_default_blocks(self):
        listing = Listing(
            name="inherit",
            queryset=Article.objects.all(),
            displays={
                "default": {"fields": FIELDS, "pager": {"type": "none"}},
                "block": {"pager": {"type": "some", "options": {"items_per_page": 3}}},
            },
        )
        block = listing.display_options("block")

        self.assertEqual(block.fields, FIELDS)
        self.assertEqual(block.pager["type"], "some")
        self.assertEqual(listing.display_options("default").pager["type"], "none")


class AssetManifestTestCase(SimpleTestCase):
    def test_scripts_ordered_by_weight_without_duplicates(self):
        assets = AssetManifest()
        assets.add_script("late.js", weight=99)
        assets.add_script("base.js")
        assets.add_script("late.js", weight=99)

        self.assertEqual(assets.scripts, ["base.js", "late.js"])
        self.assertIsInstance(assets.media, forms.Media)


class FormatterTestCase(SimpleTestCase):
    row = SimpleNamespace(slug="fish-chips")
    items = [FieldItem("Fish & Chips")]

    def test_plain_joins_and_escapes(self):
        items = self.items + [FieldItem("Tea")]
        self.assertEqual(get_formatter("plain")(items, self.row, {}), "Fish &amp; Chips, Tea")

    def test_link(self):
        html = get_formatter("link")(self.items, self.row, {"path": "/articles/{row.slug}/"})
        self.assertEqual(html, '<a href="/articles/fish-chips/">Fish &amp; Chips</a>')

    def test_link_without_target_is_plain(self):
        self.assertEqual(get_formatter("link")(self.items, self.row, {}), "Fish &amp; Chips")

    def test_trimmed(self):
        html = get_formatter("trimmed")([FieldItem("A fish that swims")], self.row, {"max_length": 7})
        self.assertEqual(html, "A fish…")

    def test_unknown_formatter(self):
        with self.assertRaises(ImproperlyConfigured):
            get_formatter("bold")


class ListingTestCase(TestCase):
    @classmethod
    def setUpTestData(cls):
        news = Category.objects.create(name="News", slug="news")
        sport = Category.objects.create(name="Sport", slug="sport")
        red = Tag.objects.create(name="red")
        fish = Tag.objects.create(name="fish")

        blue_fish = Article.objects.create(title="Blue Fish", slug="blue-fish", summary="A fish that swims",
                                           category=news)
        blue_fish.tags.add(red, fish)
        Article.objects.create(title="Red Herring", slug="red-herring", summary="A misleading clue", category=sport)
        Article.objects.create(title="Bluebird", slug="bluebird", summary="A small bird", category=news)
        Article.objects.create(title="Green Tea", slug="green-tea", summary="Warm drink", published=False)

    def setUp(self):
        cache.clear()
        self.addCleanup(registry.unregister, LISTING)

    def register(self, **default):
        registry.unregister(LISTING)
        return registry.register(make_listing(**default))

    def run_listing(self, display="default", args=None, exposed_input=None, request=None):
        run = registry.get_listing(LISTING)
        if request is not None:
            run.set_request(request)
        run.set_display(display)
        if args:
            run.set_arguments(args)
        if exposed_input is not None:
            run.set_exposed_input(exposed_input)
        run.pre_execute()
        run.execute()
        run.post_execute()
        return run

    @staticmethod
    def titles(run):
        return [row.title for row in run.result]


class RegistryTestCase(ListingTestCase):
    def test_unknown_listing_is_http404(self):
        with self.assertRaises(ListingDoesNotExist):
            registry.get_listing("nope")
        self.assertTrue(issubclass(ListingDoesNotExist, Http404))

    def test_unknown_display(self):
        self.register()
        run = registry.get_listing(LISTING)
        with self.assertRaises(DisplayDoesNotExist):
            run.set_display("feed")

    def test_each_call_returns_a_fresh_run(self):
        self.register()
        self.assertIsNot(registry.get_listing(LISTING), registry.get_listing(LISTING))

    def test_articles_listing_is_discovered(self):
        self.assertTrue(registry.is_registered("articles"))


class ListingRunTestCase(ListingTestCase):
    def test_execute_sorts_rows(self):
        self.register()
        run = self.run_listing("page")

        self.assertEqual(self.titles(run), ["Blue Fish", "Bluebird", "Green Tea", "Red Herring"])
        self.assertEqual(run.total_rows, 4)

    def test_set_option_leaves_listing_untouched(self):
        listing = self.register()
        run = registry.get_listing(LISTING)
        run.set_display("default")
        run.set_option("pager", {"type": "some", "options": {"items_per_page": 1}})
        run.set_option("cache", {"type": "none"})

        self.assertEqual(listing.display_options("default").pager, {"type": "none"})
        self.assertEqual(run.get_option("pager")["type"], "some")

    def test_render_field_and_raw_value(self):
        self.register()
        run = self.run_listing()

        self.assertEqual(run.render_field(0, "title"), "<em>Blue Fish</em>")
        self.assertEqual(run.get_field_value(0, "title"), [FieldItem("Blue Fish")])
        self.assertEqual(run.get_field_value(0, "category"), [FieldItem("News")])
        self.assertCountEqual(run.get_field_value(0, "tags"), [FieldItem("red"), FieldItem("fish")])

    def test_missing_values_are_empty(self):
        self.register()
        run = self.run_listing()
        green_tea = self.titles(run).index("Green Tea")

        self.assertEqual(run.get_field_value(green_tea, "category"), [])
        self.assertEqual(run.render_field(green_tea, "category"), "")

    def test_rendered_values_are_escaped(self):
        Article.objects.create(title="Fish & <Chips>", slug="fish-chips")
        self.register()
        run = self.run_listing()
        index = self.titles(run).index("Fish & <Chips>")

        self.assertEqual(run.render_field(index, "title"), "<em>Fish &amp; &lt;Chips&gt;</em>")

    def test_unknown_field(self):
        self.register()
        run = self.run_listing()
        with self.assertRaises(KeyError):
            run.render_field(0, "body")

    def test_field_labels(self):
        self.register(fields={"title": {"label": "Headline"}, "author_name": {}})
        run = registry.get_listing(LISTING)

        self.assertEqual(run.get_field_labels(), {"title": "Headline", "author_name": "Author name"})


class ArgumentTestCase(ListingTestCase):
    def register_argument(self, **options):
        config = {"field": "category__slug"}
        config.update(options)
        return self.register(arguments={"category": config})

    def test_argument_narrows_rows(self):
        self.register_argument()
        run = self.run_listing(args=["news"])

        self.assertEqual(self.titles(run), ["Blue Fish", "Bluebird"])

    def test_default_actions(self):
        cases = {
            "ignore": ["Blue Fish", "Bluebird", "Green Tea", "Red Herring"],
            "empty": [],
        }
        for action, expected in cases.items():
            with self.subTest(action=action):
                self.register_argument(default_action=action)
                self.assertEqual(self.titles(self.run_listing()), expected)

    def test_default_action_not_found(self):
        self.register_argument(default_action="not found")
        with self.assertRaises(Http404):
            self.run_listing()

    def test_default_argument(self):
        self.register_argument(default_action="default", default_argument="sport")
        self.assertEqual(self.titles(self.run_listing()), ["Red Herring"])

    def test_exception_value_shows_all(self):
        self.register_argument(default_action="empty")
        self.assertEqual(len(self.run_listing(args=["all"]).result), 4)


class PagerTestCase(ListingTestCase):
    def test_some_pager(self):
        self.register(pager={"type": "some", "options": {"items_per_page": 2, "offset": 1}})
        self.assertEqual(self.titles(self.run_listing()), ["Bluebird", "Green Tea"])

    def test_full_pager_reads_page_from_request(self):
        self.register(pager={"type": "full", "options": {"items_per_page": 3}})
        request = RequestFactory().get("/", {"page": "1"})
        run = self.run_listing(request=request)

        self.assertEqual(self.titles(run), ["Red Herring"])
        self.assertEqual(run.total_rows, 4)

    def test_none_pager_shows_everything(self):
        self.register(pager={"type": "none", "options": {"items_per_page": 1}})
        self.assertEqual(len(self.run_listing().result), 4)

    def test_display_pager_override(self):
        self.register()
        self.assertEqual(self.titles(self.run_listing("teaser")), ["Blue Fish"])


class CacheTestCase(ListingTestCase):
    def test_time_cache_serves_stored_rows(self):
        self.register(cache={"type": "time", "results_lifespan": 60})
        self.run_listing()
        Article.objects.filter(title="Bluebird").delete()

        self.assertIn("Bluebird", self.titles(self.run_listing()))

    def test_no_cache_reads_live_rows(self):
        self.register(cache={"type": "none"})
        self.run_listing()
        Article.objects.filter(title="Bluebird").delete()

        self.assertNotIn("Bluebird", self.titles(self.run_listing()))


class FilterTestCase(ListingTestCase):
    def test_exposed_string_filter(self):
        self.register(filters={
            "title": {"field": "title", "exposed": True, "expose": {"identifier": "t"}},
        })
        run = self.run_listing(exposed_input={"t": "BLUE"})

        self.assertEqual(self.titles(run), ["Blue Fish", "Bluebird"])

    def test_exposed_input_from_request(self):
        self.register(filters={
            "title": {"field": "title", "exposed": True, "expose": {"identifier": "t"}},
        })
        request = RequestFactory().get("/", {"t": "red", "q": "ignored", "page": "0"})
        run = self.run_listing(request=request)

        self.assertEqual(run.get_exposed_input(), {"t": "red"})
        self.assertEqual(self.titles(run), ["Red Herring"])

    def test_string_operators(self):
        cases = [
            ("starts", "blue", ["Blue Fish", "Bluebird"]),
            ("ends", "TEA", ["Green Tea"]),
            ("=", "bluebird", ["Bluebird"]),
            ("!=", "bluebird", ["Blue Fish", "Green Tea", "Red Herring"]),
            ("not", "blue", ["Green Tea", "Red Herring"]),
            ("word", "tea herring", ["Green Tea", "Red Herring"]),
            ("allwords", "fish blue", ["Blue Fish"]),
        ]
        for operator, value, expected in cases:
            with self.subTest(operator=operator):
                self.register(filters={"title": {"field": "title", "operator": operator, "value": value}})
                self.assertEqual(self.titles(self.run_listing()), expected)

    def test_fulltext_filter(self):
        cases = [
            ("and", "fish", ["Blue Fish"]),
            ("and", "a clue", ["Red Herring"]),
            ("or", "bird drink", ["Bluebird", "Green Tea"]),
        ]
        for operator, value, expected in cases:
            with self.subTest(value=value):
                self.register(filters={
                    "search": {"plugin": "fulltext", "fields": ["title", "summary"], "operator": operator,
                               "exposed": True, "expose": {"identifier": "search"}},
                })
                run = self.run_listing(exposed_input={"search": value})
                self.assertEqual(self.titles(run), expected)

    def test_required_exposed_filter_without_input(self):
        self.register(filters={
            "title": {"field": "title", "exposed": True, "expose": {"identifier": "t", "required": True}},
        })
        self.assertEqual(self.run_listing(exposed_input={}).result, [])

    def test_exposed_form(self):
        self.register(filters={
            "title": {"field": "title", "exposed": True, "expose": {"identifier": "t", "label": "Headline"}},
            "hidden": {"field": "summary", "value": "fish"},
        })
        form = registry.get_listing(LISTING).build_exposed_form()

        self.assertEqual(list(form.fields), ["t"])
        self.assertEqual(form.fields["t"].label, "Headline")
        self.assertIsInstance(form.fields["t"].widget, forms.TextInput)


class FilterOptionsFormTestCase(ListingTestCase):
    def handler(self, **config):
        self.register(filters={"title": config})
        return registry.get_listing(LISTING).get_handler("filter", "title")

    def test_exposed_filter_has_expose_section(self):
        form = FilterOptionsForm(self.handler(field="title", exposed=True))

        self.assertTrue(form.has_expose_section)
        self.assertEqual(form.expose_fields, ["identifier", "label", "required"])
        self.assertEqual(form.fields["identifier"].initial, "title")

    def test_hidden_filter_has_no_expose_section(self):
        form = FilterOptionsForm(self.handler(field="title"))

        self.assertFalse(form.has_expose_section)
        self.assertIn("operator", form.fields)

    def test_cleaned_options_nest_expose_values(self):
        form = FilterOptionsForm(self.handler(field="title", exposed=True), data={
            "operator": "starts", "value": "", "exposed": "on",
            "identifier": "headline", "label": "Headline",
        })

        self.assertTrue(form.is_valid(), form.errors)
        options = form.cleaned_options()
        self.assertEqual(options["operator"], "starts")
        self.assertEqual(options["expose"], {"identifier": "headline", "label": "Headline", "required": False})


class ListingViewsTestCase(ListingTestCase):
    def setUp(self):
        super().setUp()
        self.register(filters={
            "title": {"field": "title", "exposed": True, "expose": {"identifier": "t", "label": "Title"}},
        })

    def test_results_api(self):
        response = self.client.get(f"/api/v1/listings/{LISTING}/page/", {"t": "blue"})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["code"], 1)
        self.assertEqual(body["data"]["total_rows"], 2)
        self.assertEqual(body["data"]["rows"][0]["title"], "<em>Blue Fish</em>")

    def test_results_api_with_arguments(self):
        self.register(arguments={"category": {"field": "category__slug", "default_action": "empty"}})
        response = self.client.get(f"/api/v1/listings/{LISTING}/page/news/")

        self.assertEqual(response.json()["data"]["total_rows"], 2)

    def test_results_api_unknown_listing(self):
        response = self.client.get("/api/v1/listings/nope/page/")
        self.assertEqual(response.status_code, 404)

    def test_page_renders_form_and_rows(self):
        response = self.client.get(f"/listings/{LISTING}/page/", {"t": "red"})

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'name="t"')
        self.assertContains(response, "<em>Red Herring</em>", html=True)
        self.assertNotContains(response, "Bluebird")
