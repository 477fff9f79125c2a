from django.core.management.base import BaseCommand
import yaml

from django_company_tree.traversal import TraversalEngine


class Command(BaseCommand):
    help = 'Export the active company tree to a YAML file'

    def add_arguments(self, parser):
        parser.add_argument('output', nargs='?', default='company_tree.yaml', help='Output YAML file path')

    def handle(self, *args, **options):
        output_path = options['output']
        traversal = TraversalEngine()
        root = traversal.store.get_active_root()
        if root is None:
            self.stderr.write(self.style.WARNING('No active holding company found'))
            tree = {}
        else:
            tree = self._as_dict(traversal, root)

        with open(output_path, 'w') as f:
            yaml.safe_dump({'company': tree}, f, default_flow_style=False, sort_keys=False)

        self.stdout.write(self.style.SUCCESS(f'Company tree exported to {output_path}'))

    def _as_dict(self, traversal, node, depth=0):
        data = {'code': node.code, 'name': node.name, 'level': node.level}
        if node.description:
            data['description'] = node.description
        if depth >= traversal.max_depth:
            return data
        children = [self._as_dict(traversal, child, depth + 1) for child in traversal.get_children(node.id)]
        if children:
            data['children'] = children
        return data
