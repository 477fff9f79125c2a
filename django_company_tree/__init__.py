"""Company hierarchy core for Django projects.

Public entry points live in their modules so the package imports before the
app registry is ready:

* :class:`django_company_tree.services.HierarchyService` for mutations;
* :class:`django_company_tree.traversal.TraversalEngine` for tree queries;
* :class:`django_company_tree.scope.ScopeResolver` for RBAC scopes.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
