"""Catalog Service - ingredient types and finished products.

Reference data used by receiving and production runs. Ingredient types and
products are configuration: they are deactivated rather than deleted so
that historical lots and runs keep resolving their names.

All functions follow the session pattern: pass ``session`` to join an
existing transaction, otherwise a new ``session_scope()`` is opened.
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from bakery_trace.models import IngredientType, Product, StorageCondition
from bakery_trace.services import audit_service
from bakery_trace.services.database import session_scope
from bakery_trace.services.exceptions import (
    IngredientTypeNotFound,
    ProductNotFound,
    ValidationError,
)
from bakery_trace.utils.constants import ALL_UNITS, STORAGE_CONDITIONS


def create_ingredient_type(
    name: str,
    default_unit: str,
    storage: str = StorageCondition.AMBIENT.value,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Create a new ingredient type.

    Args:
        name: Display name (required, unique)
        default_unit: One of ALL_UNITS
        storage: One of STORAGE_CONDITIONS (default "Ambient")
        session: Optional database session for transactional atomicity

    Returns:
        Dict[str, Any]: Created ingredient type as dictionary

    Raises:
        ValidationError: If name is blank, or unit/storage is unknown
    """
    if session is not None:
        return _create_ingredient_type_impl(name, default_unit, storage, session)
    with session_scope() as session:
        return _create_ingredient_type_impl(name, default_unit, storage, session)


def _create_ingredient_type_impl(
    name: str, default_unit: str, storage: str, session: Session
) -> Dict[str, Any]:
    if isinstance(storage, StorageCondition):
        storage = storage.value
    errors = []
    if not name or not name.strip():
        errors.append("Name is required")
    if default_unit not in ALL_UNITS:
        errors.append(f"Unknown unit '{default_unit}'")
    if storage not in STORAGE_CONDITIONS:
        errors.append(f"Unknown storage condition '{storage}'")
    if errors:
        raise ValidationError(errors)

    existing = session.query(IngredientType).filter(IngredientType.name == name.strip()).first()
    if existing:
        raise ValidationError([f"Ingredient type '{name.strip()}' already exists"])

    ingredient_type = IngredientType(name=name.strip(), default_unit=default_unit, storage=storage)
    session.add(ingredient_type)
    session.flush()
    return ingredient_type.to_dict()


def get_ingredient_types(
    include_inactive: bool = False, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """Get ingredient types sorted by name."""
    if session is not None:
        return _get_ingredient_types_impl(include_inactive, session)
    with session_scope() as session:
        return _get_ingredient_types_impl(include_inactive, session)


def _get_ingredient_types_impl(include_inactive: bool, session: Session) -> List[Dict[str, Any]]:
    query = session.query(IngredientType)
    if not include_inactive:
        query = query.filter(IngredientType.is_active.is_(True))
    return [t.to_dict() for t in query.order_by(IngredientType.name).all()]


def deactivate_ingredient_type(
    ingredient_type_id: int, session: Optional[Session] = None
) -> Dict[str, Any]:
    """Deactivate an ingredient type (soft delete).

    Raises:
        IngredientTypeNotFound: If the ingredient type doesn't exist
    """
    if session is not None:
        return _deactivate_ingredient_type_impl(ingredient_type_id, session)
    with session_scope() as session:
        return _deactivate_ingredient_type_impl(ingredient_type_id, session)


def _deactivate_ingredient_type_impl(ingredient_type_id: int, session: Session) -> Dict[str, Any]:
    ingredient_type = (
        session.query(IngredientType).filter(IngredientType.id == ingredient_type_id).first()
    )
    if not ingredient_type:
        raise IngredientTypeNotFound(ingredient_type_id)
    ingredient_type.is_active = False
    session.flush()
    return ingredient_type.to_dict()


def create_product(
    name: str,
    sku: str,
    has_dough: bool = True,
    has_filling: bool = False,
    session: Optional[Session] = None,
) -> Dict[str, Any]:
    """Add a finished product to the catalog.

    Args:
        name: Product name (required)
        sku: Stock keeping unit (required, unique)
        has_dough: Product uses a dough batch
        has_filling: Product uses a filling batch
        session: Optional database session

    Returns:
        Dict[str, Any]: Created product as dictionary

    Raises:
        ValidationError: If name/sku are blank or the SKU already exists
    """
    if session is not None:
        return _create_product_impl(name, sku, has_dough, has_filling, session)
    with session_scope() as session:
        return _create_product_impl(name, sku, has_dough, has_filling, session)


def _create_product_impl(
    name: str, sku: str, has_dough: bool, has_filling: bool, session: Session
) -> Dict[str, Any]:
    errors = []
    if not name or not name.strip():
        errors.append("Name is required")
    if not sku or not sku.strip():
        errors.append("SKU is required")
    if errors:
        raise ValidationError(errors)

    if session.query(Product).filter(Product.sku == sku.strip()).first():
        raise ValidationError([f"SKU '{sku.strip()}' already exists"])

    product = Product(
        name=name.strip(), sku=sku.strip(), has_dough=has_dough, has_filling=has_filling
    )
    session.add(product)
    session.flush()
    audit_service.record_event(
        session,
        audit_service.ADD_CATALOG_ITEM,
        f"Added {product.name} to catalog",
        entity_type="Product",
        entity_id=product.id,
    )
    return product.to_dict()


def get_product(product_id: int, session: Optional[Session] = None) -> Dict[str, Any]:
    """Get a catalog product by ID.

    Raises:
        ProductNotFound: If the product doesn't exist
    """
    if session is not None:
        return _get_product_impl(product_id, session)
    with session_scope() as session:
        return _get_product_impl(product_id, session)


def _get_product_impl(product_id: int, session: Session) -> Dict[str, Any]:
    product = session.query(Product).filter(Product.id == product_id).first()
    if not product:
        raise ProductNotFound(product_id)
    return product.to_dict()


def get_products(
    include_inactive: bool = False, session: Optional[Session] = None
) -> List[Dict[str, Any]]:
    """Get catalog products sorted by name."""
    if session is not None:
        return _get_products_impl(include_inactive, session)
    with session_scope() as session:
        return _get_products_impl(include_inactive, session)


def _get_products_impl(include_inactive: bool, session: Session) -> List[Dict[str, Any]]:
    query = session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    return [p.to_dict() for p in query.order_by(Product.name).all()]
