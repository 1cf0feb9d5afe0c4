"""Predicados de acceso.

Cada predicado recibe el principal (un ``User`` o ``None``) y devuelve
``True``/``False`` o un filtro declarativo con la forma
``{campo: {'equals': valor}}`` que restringe los documentos visibles.
``apply_access`` convierte ese resultado en una consulta SQLAlchemy.
"""
from sqlalchemy import and_, false, or_

from plek.models import Role


def _has(principal, role):
    if principal is None:
        return False
    return role in principal.role_set


def is_admin(principal):
    return _has(principal, Role.ADMIN)


def is_host(principal):
    return _has(principal, Role.HOST)


def admin_or_customer(principal):
    return _has(principal, Role.ADMIN) or _has(principal, Role.CUSTOMER)


def admin_or_host(principal):
    return _has(principal, Role.ADMIN) or _has(principal, Role.HOST)


def admin_or_self(field):
    def check(principal):
        if principal is None:
            return False
        if is_admin(principal):
            return True
        return {field: {'equals': principal.id}}
    return check


def admin_or_published(principal):
    if is_admin(principal):
        return True
    return {'_status': {'equals': 'published'}}


def admin_or_self_or_guests(user_field, guests_field):
    def check(principal):
        if principal is None:
            return False
        if is_admin(principal):
            return True
        return {'or': [
            {user_field: {'equals': principal.id}},
            {guests_field: {'contains': principal.id}},
        ]}
    return check


# Variantes a nivel de campo: se evalúan contra un documento concreto.

def is_admin_field(principal, doc=None):
    return is_admin(principal)


def is_host_field(principal, doc=None):
    return is_host(principal)


def admin_or_self_field(field):
    # Misma regla que admin_or_self: cualquier rol dueño del documento.
    def check(principal, doc):
        if principal is None:
            return False
        if is_admin(principal):
            return True
        return _doc_value(doc, field) == principal.id
    return check


def _doc_value(doc, field):
    if doc is None:
        return None
    if isinstance(doc, dict):
        return doc.get(field)
    return getattr(doc, field, None)


def _column(model, field):
    if hasattr(model, field):
        return getattr(model, field)
    # '_status' -> 'status'
    return getattr(model, field.lstrip('_'))


def _clause(model, where):
    clauses = []
    for field, condition in where.items():
        if field == 'or':
            clauses.append(or_(*[_clause(model, sub) for sub in condition]))
            continue
        column = _column(model, field)
        if 'equals' in condition:
            clauses.append(column == condition['equals'])
        elif 'contains' in condition:
            # relación muchos-a-muchos con usuarios
            target = column.property.mapper.class_
            clauses.append(column.any(target.id == condition['contains']))
        else:
            raise ValueError('Unsupported condition for %s: %r' % (field, condition))
    if len(clauses) == 1:
        return clauses[0]
    return and_(*clauses)


def apply_access(query, model, result):
    if result is True:
        return query
    if not result:
        return query.filter(false())
    return query.filter(_clause(model, result))


def allows(result, doc):
    """Evalúa un resultado de predicado contra un documento ya cargado."""
    if result is True:
        return True
    if not result:
        return False
    return _matches(result, doc)


def _matches(where, doc):
    for field, condition in where.items():
        if field == 'or':
            if not any(_matches(sub, doc) for sub in condition):
                return False
            continue
        value = _doc_value(doc, field)
        if value is None:
            value = _doc_value(doc, field.lstrip('_'))
        if 'equals' in condition and value != condition['equals']:
            return False
        if 'contains' in condition:
            ids = [getattr(item, 'id', item) for item in (value or [])]
            if condition['contains'] not in ids:
                return False
    return True
