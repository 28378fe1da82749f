# product_service/repository.py

"""
Product Repository: CRUD operations against the products table.

The repository knows nothing about media storage. Database errors are
translated into TransientBackendFailure so no raw driver exception reaches a
client.
"""
import logging
import uuid
from typing import Any, List, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import (
    InvalidIdentifier,
    MissingFields,
    NotFound,
    TransientBackendFailure,
    ValidationFailed,
)
from .models import Product, utcnow
from .validation import missing_required_fields, validate_product

logger = logging.getLogger(__name__)


def check_product_id(product_id: Any) -> str:
    """
    Return the canonical form of a product id, or raise InvalidIdentifier.
    Runs before any query so malformed ids never reach the database.
    """
    if not isinstance(product_id, str):
        raise InvalidIdentifier()
    try:
        parsed = uuid.UUID(product_id)
    except ValueError:
        raise InvalidIdentifier()
    canonical = str(parsed)
    if canonical != product_id.lower():
        raise InvalidIdentifier()
    return canonical


class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    def list(self) -> List[Product]:
        try:
            products = (
                self.db.query(Product)
                .order_by(Product.created_at.desc(), Product.id)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Error listing products: {e}", exc_info=True)
            raise TransientBackendFailure("fetch products", e)
        logger.info(f"Retrieved {len(products)} products.")
        return products

    def get(self, product_id: Any) -> Product:
        product_id = check_product_id(product_id)
        try:
            product = self.db.get(Product, product_id)
        except SQLAlchemyError as e:
            logger.error(f"Error fetching product {product_id}: {e}", exc_info=True)
            raise TransientBackendFailure("fetch product", e)
        if product is None:
            logger.warning(f"Product with ID: {product_id} not found.")
            raise NotFound()
        return product

    def create(self, payload: Mapping[str, Any]) -> Product:
        missing = missing_required_fields(payload)
        if missing:
            logger.warning(f"Rejecting product without required fields: {missing}")
            raise MissingFields()

        fields, violations = validate_product(payload)
        if violations:
            raise ValidationFailed(violations)

        now = utcnow()
        product = Product(**fields, created_at=now, updated_at=now)
        try:
            self.db.add(product)
            self.db.commit()
            self.db.refresh(product)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating product: {e}", exc_info=True)
            raise TransientBackendFailure("create product", e)
        logger.info(
            f"Product '{product.product_name}' (ID: {product.id}) created successfully."
        )
        return product

    def update(self, product_id: Any, payload: Mapping[str, Any]) -> Product:
        """Replace every writable field; omitted optional fields become empty."""
        product = self.get(product_id)
        product_id = product.id

        fields, violations = validate_product(payload)
        if violations:
            raise ValidationFailed(violations)

        for field, value in fields.items():
            setattr(product, field, value)
        product.updated_at = utcnow()
        try:
            self.db.commit()
            self.db.refresh(product)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating product {product_id}: {e}", exc_info=True)
            raise TransientBackendFailure("update product", e)
        logger.info(f"Product '{product.product_name}' (ID: {product.id}) updated successfully.")
        return product

    def delete(self, product_id: Any) -> None:
        product = self.get(product_id)
        product_id = product.id
        try:
            self.db.delete(product)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting product {product_id}: {e}", exc_info=True)
            raise TransientBackendFailure("delete product", e)
        logger.info(f"Product (ID: {product_id}) deleted successfully.")
