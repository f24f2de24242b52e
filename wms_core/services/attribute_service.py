import logging
from typing import Any, Dict, List, Optional

from wms_core.database import models
from wms_core.repositories.interfaces import (
    IAttributeRepository, IAttributeOptionRepository, IAttributeValueRepository, IProductRepository
)
from wms_core.services.exceptions import (
    AttributeNotFoundError, AttributeOptionNotFoundError, AttributeValueNotFoundError,
    ConflictError, ProductNotFoundError, ValidationError
)
from wms_core.services.value_types import (
    interpret_value, is_known_type, normalize_raw_value, uses_options
)

logger = logging.getLogger(__name__)


def attribute_to_dict(attribute: models.ProductAttribute) -> Dict[str, Any]:
    return {
        "id": attribute.id,
        "name": attribute.name,
        "slug": attribute.slug,
        "type": attribute.type,
        "description": attribute.description,
        "is_required": attribute.is_required,
        "is_filterable": attribute.is_filterable,
        "is_searchable": attribute.is_searchable,
        "sort_order": attribute.sort_order,
        "is_active": attribute.is_active,
    }


def to_sort_order(value: Any) -> int:
    """sort_order 입력값을 정수로 변환합니다. 정수로 읽을 수 없으면 ValidationError."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError("sort_order must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"sort_order must be an integer, got '{value}'.")


def option_to_dict(option: models.AttributeOption) -> Dict[str, Any]:
    return {
        "id": option.id,
        "attribute_id": option.attribute_id,
        "value": option.value,
        "label": option.label,
        "sort_order": option.sort_order,
        "is_active": option.is_active,
    }


def value_to_dict(attribute_value: models.AttributeValue) -> Dict[str, Any]:
    """
    저장된 값을 읽기용 딕셔너리로 변환합니다. 옵션이 연결되어 있으면 option_label은
    옵션 행에서 가져오고, 없으면 display_value는 원래 값을 그대로 씁니다.
    """
    attribute = attribute_value.attribute
    option = attribute_value.option
    option_label = option.label if option is not None else None
    data = {
        "id": attribute_value.id,
        "product_id": attribute_value.product_id,
        "attribute_id": attribute_value.attribute_id,
        "value": attribute_value.value,
        "option_id": attribute_value.option_id,
        "option_label": option_label,
        "display_value": option_label if option_label is not None else attribute_value.value,
    }
    if attribute is not None:
        data.update({
            "attribute_name": attribute.name,
            "attribute_slug": attribute.slug,
            "attribute_type": attribute.type,
        })
    product = attribute_value.product
    if product is not None:
        data.update({"product_name": product.name, "product_sku": product.sku})
    return data


class AttributeService:
    """상품 사용자 정의 필드(EAV): 속성 정의, 옵션 목록, 상품별 타입 값을 관리하는 서비스를 제공합니다."""

    def __init__(self, attribute_repo: IAttributeRepository, option_repo: IAttributeOptionRepository,
                 value_repo: IAttributeValueRepository, product_repo: IProductRepository):
        """
        AttributeService를 초기화합니다.

        Args:
            attribute_repo: 속성 정의에 접근하기 위한 리포지토리.
            option_repo: select/multiselect 속성의 옵션에 접근하기 위한 리포지토리.
            value_repo: 상품별 값에 접근하기 위한 리포지토리.
            product_repo: 상품 존재 여부 확인용 리포지토리.
        """
        self.attribute_repo = attribute_repo
        self.option_repo = option_repo
        self.value_repo = value_repo
        self.product_repo = product_repo

    # --- 속성 정의 ---

    def _get_attribute_or_raise(self, attribute_id: int) -> models.ProductAttribute:
        attribute = self.attribute_repo.find_by_id(attribute_id)
        if not attribute:
            raise AttributeNotFoundError(f"Attribute with id '{attribute_id}' not found.")
        return attribute

    def create_attribute(self, name: str, slug: str, type: str, description: Optional[str] = None,
                         is_required: bool = False, is_filterable: bool = False, is_searchable: bool = False,
                         sort_order: int = 0) -> Dict[str, Any]:
        """
        새로운 속성 정의를 생성합니다.

        Raises:
            ValidationError: 이름/slug가 없거나, 알 수 없는 타입이거나, 이름/slug가 이미 사용 중이거나,
                sort_order가 정수가 아닐 때.
        """
        if not name or not slug:
            raise ValidationError("Attribute name and slug are required.")
        if not is_known_type(type):
            raise ValidationError(f"Unknown attribute type '{type}'.")
        if self.attribute_repo.find_by_slug(slug):
            raise ValidationError(f"Attribute with slug '{slug}' already exists.")
        if self.attribute_repo.find_by_name(name):
            raise ValidationError(f"Attribute with name '{name}' already exists.")

        attribute = self.attribute_repo.create(models.ProductAttribute(
            name=name,
            slug=slug,
            type=type,
            description=description,
            is_required=bool(is_required),
            is_filterable=bool(is_filterable),
            is_searchable=bool(is_searchable),
            sort_order=to_sort_order(sort_order),
            is_active=True,
        ))
        logger.info("Attribute '%s' (%s) created", slug, type)
        return attribute_to_dict(attribute)

    def list_attributes(self, include_inactive: bool = False) -> List[Dict[str, Any]]:
        return [attribute_to_dict(a) for a in self.attribute_repo.list_all(active_only=not include_inactive)]

    def get_attribute(self, attribute_id: int) -> Dict[str, Any]:
        """속성 상세 정보를 조회합니다. select/multiselect 속성은 활성 옵션 목록을 함께 반환합니다."""
        attribute = self._get_attribute_or_raise(attribute_id)
        data = attribute_to_dict(attribute)
        if uses_options(attribute.type):
            data["options"] = [option_to_dict(o) for o in self.option_repo.list_all(attribute_id=attribute.id)]
        return data

    def update_attribute(self, attribute_id: int, **changes: Any) -> Dict[str, Any]:
        """
        속성 정의에서 주어진 필드만 수정합니다. 검증이 모두 끝난 뒤에 값을 반영합니다.

        Raises:
            AttributeNotFoundError: 해당 ID의 속성을 찾을 수 없을 때.
            ValidationError: 알 수 없는 필드나 타입, 다른 속성이 쓰는 이름/slug, 정수가 아닌 sort_order.
            ConflictError: 상품 값이 있는 속성의 타입을 바꾸려 할 때.
        """
        allowed = {"name", "slug", "type", "description", "is_required", "is_filterable",
                   "is_searchable", "sort_order", "is_active"}
        unknown = set(changes) - allowed
        if unknown:
            raise ValidationError(f"Unknown attribute fields: {sorted(unknown)}")

        attribute = self._get_attribute_or_raise(attribute_id)
        if changes.get("sort_order") is not None:
            changes["sort_order"] = to_sort_order(changes["sort_order"])

        new_type = changes.get("type")
        if new_type is not None and new_type != attribute.type:
            if not is_known_type(new_type):
                raise ValidationError(f"Unknown attribute type '{new_type}'.")
            if self.attribute_repo.count_values(attribute.id) > 0:
                raise ConflictError(
                    f"Attribute '{attribute.slug}' has product values; its type cannot change."
                )
        slug = changes.get("slug")
        if slug is not None and slug != attribute.slug:
            existing = self.attribute_repo.find_by_slug(slug)
            if not slug or (existing and existing.id != attribute.id):
                raise ValidationError(f"Attribute slug '{slug}' is empty or already in use.")
        name = changes.get("name")
        if name is not None and name != attribute.name:
            existing = self.attribute_repo.find_by_name(name)
            if not name or (existing and existing.id != attribute.id):
                raise ValidationError(f"Attribute name '{name}' is empty or already in use.")

        for field, value in changes.items():
            if value is None:
                continue
            if field.startswith("is_"):
                value = bool(value)
            setattr(attribute, field, value)

        return attribute_to_dict(self.attribute_repo.save(attribute))

    def delete_attribute(self, attribute_id: int) -> bool:
        """
        속성 정의를 옵션과 함께 삭제합니다.

        Raises:
            AttributeNotFoundError: 해당 ID의 속성을 찾을 수 없을 때.
            ConflictError: 이 속성을 참조하는 상품 값이 남아 있을 때.
        """
        attribute = self._get_attribute_or_raise(attribute_id)
        if self.attribute_repo.count_values(attribute_id) > 0:
            raise ConflictError(f"Attribute '{attribute.slug}' has product values and cannot be deleted.")
        self.attribute_repo.delete(attribute)
        logger.info("Attribute '%s' deleted", attribute.slug)
        return True

    # --- 옵션 ---

    def _get_option_or_raise(self, option_id: int) -> models.AttributeOption:
        option = self.option_repo.find_by_id(option_id)
        if not option:
            raise AttributeOptionNotFoundError(f"Attribute option with id '{option_id}' not found.")
        return option

    def create_option(self, attribute_id: int, value: str, label: Optional[str] = None,
                      sort_order: int = 0) -> Dict[str, Any]:
        """
        select/multiselect 속성에 선택지를 추가합니다. label이 없으면 value를 씁니다.

        Raises:
            AttributeNotFoundError: 해당 ID의 속성을 찾을 수 없을 때.
            ValidationError: 옵션을 받지 않는 타입이거나, value가 비었거나 이미 존재할 때.
        """
        attribute = self._get_attribute_or_raise(attribute_id)
        if not uses_options(attribute.type):
            raise ValidationError("Options can only be created for select and multiselect attributes.")
        if not value:
            raise ValidationError("Option value is required.")
        if self.option_repo.find_by_value(attribute_id, value):
            raise ValidationError(f"Option '{value}' already exists for attribute '{attribute.slug}'.")

        option = self.option_repo.create(models.AttributeOption(
            attribute_id=attribute_id,
            value=value,
            label=label or value,
            sort_order=to_sort_order(sort_order),
            is_active=True,
        ))
        return option_to_dict(option)

    def list_options(self, attribute_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """활성 옵션 목록을 소속 속성의 이름, slug와 함께 조회합니다."""
        options = []
        for option in self.option_repo.list_all(attribute_id=attribute_id):
            data = option_to_dict(option)
            data["attribute_name"] = option.attribute.name
            data["attribute_slug"] = option.attribute.slug
            options.append(data)
        return options

    def get_option(self, option_id: int) -> Dict[str, Any]:
        return option_to_dict(self._get_option_or_raise(option_id))

    def update_option(self, option_id: int, value: Optional[str] = None, label: Optional[str] = None,
                      sort_order: Optional[int] = None, is_active: Optional[bool] = None) -> Dict[str, Any]:
        """
        옵션을 수정합니다. value가 바뀌면 이 옵션을 가리키는 모든 상품 값에도 새 value를
        같은 트랜잭션 안에서 복사합니다.

        Raises:
            AttributeOptionNotFoundError: 해당 ID의 옵션을 찾을 수 없을 때.
            ValidationError: 새 value가 비었거나 이미 같은 속성에 존재할 때, sort_order가 정수가 아닐 때.
        """
        option = self._get_option_or_raise(option_id)
        new_sort_order = to_sort_order(sort_order) if sort_order is not None else None
        value_changed = value is not None and value != option.value
        if value_changed:
            existing = self.option_repo.find_by_value(option.attribute_id, value)
            if not value or (existing and existing.id != option.id):
                raise ValidationError(f"Option value '{value}' is empty or already in use.")
            option.value = value
        if label is not None:
            option.label = label or option.value
        if new_sort_order is not None:
            option.sort_order = new_sort_order
        if is_active is not None:
            option.is_active = bool(is_active)

        if value_changed:
            option = self.option_repo.save_and_sync_values(option)
        else:
            option = self.option_repo.save(option)
        return option_to_dict(option)

    def delete_option(self, option_id: int) -> bool:
        """
        옵션을 삭제합니다.

        Raises:
            AttributeOptionNotFoundError: 해당 ID의 옵션을 찾을 수 없을 때.
            ConflictError: 이 옵션을 참조하는 상품 값이 남아 있을 때.
        """
        option = self._get_option_or_raise(option_id)
        if self.option_repo.count_values(option_id) > 0:
            raise ConflictError(f"Option '{option.value}' is used by product values and cannot be deleted.")
        self.option_repo.delete(option)
        return True

    # --- 상품별 값 ---

    def _get_product_or_raise(self, product_id: int) -> models.Product:
        product = self.product_repo.find_by_id(product_id)
        if not product:
            raise ProductNotFoundError(f"Product with id '{product_id}' not found.")
        return product

    def set_attribute_value(self, product_id: int, attribute_id: int, raw_value: Any = None,
                            option_id: Optional[int] = None) -> Dict[str, Any]:
        """
        한 상품의 한 속성 값을 저장합니다 (없으면 추가, 있으면 갱신).

        select/multiselect 속성은 옵션이 값을 결정합니다. raw_value는 무시되고
        옵션의 value가 option_id와 함께 저장됩니다. 그 밖의 타입은 타입에 맞게 검증된
        raw_value를 저장하며 옵션을 받지 않습니다.

        Raises:
            AttributeNotFoundError: 해당 ID의 속성을 찾을 수 없을 때.
            ProductNotFoundError: 해당 ID의 상품을 찾을 수 없을 때.
            ValidationError: select 타입에서 옵션이 없거나 다른 속성의 것이거나 비활성일 때,
                자유 입력 타입에 옵션이 주어졌을 때, 값이 속성 타입과 맞지 않을 때.
        """
        attribute = self._get_attribute_or_raise(attribute_id)
        self._get_product_or_raise(product_id)

        if uses_options(attribute.type):
            if option_id is None:
                raise ValidationError(f"Attribute '{attribute.slug}' requires an option_id.")
            option = self.option_repo.find_by_id(option_id)
            if not option or option.attribute_id != attribute.id:
                raise ValidationError(f"Option '{option_id}' does not belong to attribute '{attribute.slug}'.")
            if not option.is_active:
                raise ValidationError(f"Option '{option.value}' is inactive.")
            stored_value, stored_option_id = option.value, option.id
        else:
            if option_id is not None:
                raise ValidationError(
                    f"Attribute '{attribute.slug}' of type '{attribute.type}' does not take an option_id."
                )
            stored_value = normalize_raw_value(attribute.type, raw_value, attribute.is_required)
            stored_option_id = None

        attribute_value = self.value_repo.upsert(product_id, attribute.id, stored_value, stored_option_id)
        return value_to_dict(attribute_value)

    def get_attribute_value(self, product_id: int, attribute_id: int) -> Dict[str, Any]:
        attribute_value = self.value_repo.find(product_id, attribute_id)
        if not attribute_value:
            raise AttributeValueNotFoundError(
                f"No value for attribute '{attribute_id}' on product '{product_id}'."
            )
        return value_to_dict(attribute_value)

    def list_values(self, product_id: Optional[int] = None, attribute_id: Optional[int] = None) -> List[Dict[str, Any]]:
        return [value_to_dict(v) for v in self.value_repo.list_detailed(product_id=product_id, attribute_id=attribute_id)]

    def get_product_attributes(self, product_id: int) -> Dict[str, Any]:
        """
        상품의 사용자 정의 필드를 속성 slug를 키로, 타입에 맞게 해석된 값과 함께 조회합니다.

        Raises:
            ProductNotFoundError: 해당 ID의 상품을 찾을 수 없을 때.
        """
        self._get_product_or_raise(product_id)
        fields = {}
        for attribute_value in self.value_repo.list_detailed(product_id=product_id):
            attribute = attribute_value.attribute
            data = value_to_dict(attribute_value)
            data["typed_value"] = interpret_value(attribute.type, attribute_value.value)
            fields[attribute.slug] = data
        return fields

    def missing_required_attributes(self, product_id: int) -> List[str]:
        """
        상품에 값이 없는 활성 필수 속성의 slug 목록을 조회합니다.

        Raises:
            ProductNotFoundError: 해당 ID의 상품을 찾을 수 없을 때.
        """
        self._get_product_or_raise(product_id)
        present = {v.attribute_id for v in self.value_repo.list_detailed(product_id=product_id)}
        return [
            a.slug for a in self.attribute_repo.list_all(active_only=True)
            if a.is_required and a.id not in present
        ]

    def delete_attribute_value(self, product_id: int, attribute_id: int) -> bool:
        attribute_value = self.value_repo.find(product_id, attribute_id)
        if not attribute_value:
            raise AttributeValueNotFoundError(
                f"No value for attribute '{attribute_id}' on product '{product_id}'."
            )
        self.value_repo.delete(attribute_value)
        return True
