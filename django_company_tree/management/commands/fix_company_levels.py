"""Re-derive every company level from the parent links."""

from django.core.management.base import BaseCommand

from django_company_tree.exceptions import HierarchyError
from django_company_tree.services import HierarchyService


class Command(BaseCommand):
    help = "Recompute company levels from the hierarchy and print the active tree"

    def add_arguments(self, parser):
        parser.add_argument(
            "--quiet-tree",
            action="store_true",
            help="Do not print the company table after fixing levels",
        )

    def handle(self, *args, **options):
        service = HierarchyService()
        try:
            report = service.recompute_levels()
        except HierarchyError as e:
            self.stderr.write(self.style.ERROR(str(e)))
            raise

        for notice in report.clamped:
            self.stdout.write(
                self.style.WARNING(
                    f"Level of {notice.node_id} clamped from {notice.computed_level} to {notice.max_depth}"
                )
            )
        self.stdout.write(
            self.style.SUCCESS(
                f"Fixed {report.corrections} company levels in {report.passes} passes"
            )
        )

        if options["quiet_tree"]:
            return

        nodes = service.store.list_active()
        codes = {node.id: node.code for node in nodes}
        self.stdout.write(f"{'Level':<6} {'Code':<20} {'Name':<40} Parent")
        for node in nodes:
            parent = codes.get(node.parent_id, "-") if node.parent_id is not None else "-"
            self.stdout.write(f"{node.level:<6} {node.code:<20} {node.name:<40} {parent}")
