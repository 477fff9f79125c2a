from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("django_company_tree", "0001_initial"),
    ]

    operations = [
        migrations.AddConstraint(
            model_name="company",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_active", True), ("parent__isnull", True)),
                fields=("is_active",),
                name="company_tree_single_active_root",
            ),
        ),
    ]
