# articles/admin.py
from django.contrib import admin
from django.utils.text import Truncator

from .models import Article, Category, Tag


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ("name", "slug")
    search_fields = ("name",)
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Tag)
class TagAdmin(admin.ModelAdmin):
    search_fields = ("name",)


@admin.register(Article)
class ArticleAdmin(admin.ModelAdmin):
    list_display = ("title", "category", "author_name", "published", "short_summary", "created_at")
    list_filter = ("published", "category")
    search_fields = ("title", "summary", "author_name")
    prepopulated_fields = {"slug": ("title",)}
    filter_horizontal = ("tags",)

    @admin.display(description="Summary")
    def short_summary(self, obj):
        return Truncator(obj.summary).chars(60, truncate=" …")
