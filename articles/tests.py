from django.core.cache import cache
from django.test import TestCase

from autocomplete_filters.conf import app_settings
from .models import Article, Category, Tag


class ArticleListingTestCase(TestCase):
    @classmethod
    def setUpTestData(cls):
        news = Category.objects.create(name="News", slug="news")
        Category.objects.create(name="Sport", slug="sport")
        tag = Tag.objects.create(name="nature")

        blue_fish = Article.objects.create(title="Blue Fish", slug="blue-fish", summary="A fish that swims",
                                           author_name="Ann Lee", category=news)
        blue_fish.tags.add(tag)
        Article.objects.create(title="Bluebird", slug="bluebird", summary="A small bird", author_name="Bob Stone")
        Article.objects.create(title="Blue Moon", slug="blue-moon", summary="Draft", published=False)

    def setUp(self):
        cache.clear()

    def test_page_wires_autocomplete_widgets(self):
        response = self.client.get("/listings/articles/page/")

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, 'data-autocomplete-path="/autocomplete_filter/title/articles/page/"')
        self.assertContains(response, 'data-autocomplete-path="/autocomplete_filter/author_name/articles/page/"')
        self.assertContains(response, 'data-autocomplete-path="/autocomplete_filter/search/articles/page/"')
        self.assertContains(response, app_settings.AUTOCOMPLETE_SCRIPT)
        self.assertContains(response, app_settings.DEPENDENT_SCRIPT)

    def test_page_with_category_argument(self):
        response = self.client.get("/listings/articles/page/news/")

        self.assertContains(response, 'data-autocomplete-args="news"')
        self.assertContains(response, "<em>Blue Fish</em>", html=True)
        self.assertNotContains(response, "Bluebird")

    def test_title_suggestions_skip_unpublished_articles(self):
        response = self.client.get("/autocomplete_filter/title/articles/page/", {"q": "blue"})

        self.assertEqual([entry["value"] for entry in response.json()], ["Blue Fish", "Bluebird"])

    def test_title_needs_two_characters(self):
        body = self.client.get("/autocomplete_filter/title/articles/page/", {"q": "b"}).json()

        self.assertEqual(len(body), 1)
        self.assertIn("should have at least", body[0]["label"])

    def test_search_dropdown_uses_formatted_summary(self):
        body = self.client.get("/autocomplete_filter/search/articles/block/", {"q": "swims"}).json()

        self.assertEqual(body, [{
            "value": "A fish that swims",
            "label": '<div class="reference-autocomplete">A fish that swims</div>',
        }])

    def test_results_api(self):
        response = self.client.get("/api/v1/listings/articles/block/")

        data = response.json()["data"]
        self.assertEqual(data["title"], "Latest articles")
        self.assertEqual(data["total_rows"], 2)
        self.assertEqual(data["fields"]["author_name"], "Author")
