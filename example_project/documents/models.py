from django.db import models

from django_company_tree.integrations.orm import ScopedManager


class Report(models.Model):
    """Company-owned resource filtered through a resolved company scope."""

    title = models.CharField(max_length=255)
    company = models.ForeignKey(
        "django_company_tree.Company",
        on_delete=models.PROTECT,
        related_name="reports",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = ScopedManager()

    class Meta:
        ordering = ("title",)

    def __str__(self) -> str:
        return self.title
