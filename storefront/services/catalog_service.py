"""Menu listings and edits for the admin and staff surfaces."""
import logging
from typing import Dict, Any, List

from storefront.exceptions import NotFoundError, ValidationError, PersistenceError
from storefront.models import MenuItem, MenuItemTag
from storefront.utils.formatters import to_int_or_none

logger = logging.getLogger(__name__)

BADGE_MAX_LEN = 40
UNCATEGORIZED = 'Uncategorized'


def get_menu_item(session, item_id: int) -> MenuItem:
    item = session.query(MenuItem).filter_by(id=item_id).first()
    if item is None:
        raise NotFoundError("Menu item not found.")
    return item


def _commit(session, item_id, action):
    try:
        session.commit()
    except Exception as e:
        session.rollback()
        logger.exception(f"[MENU] Failed to {action} item {item_id}: {e}")
        raise PersistenceError("Could not update menu item.", code='MENU_ITEM_UPDATE_FAILED')


def list_all_items(session) -> List[MenuItem]:
    """Every menu item, inactive ones included, by category then sort order."""
    return (
        session.query(MenuItem)
        .order_by(MenuItem.category.asc(), MenuItem.sort_order.asc(), MenuItem.id.asc())
        .all()
    )


def inventory_sections(session) -> List[Dict[str, Any]]:
    """
    Active menu items grouped for the staff stock screen.

    Sections are sorted by category name (blank categories become
    'Uncategorized'); items within a section by sort_order, then name.
    """
    items = session.query(MenuItem).filter(MenuItem.is_active.is_(True)).all()

    groups: Dict[str, List[MenuItem]] = {}
    for item in items:
        category = (item.category or '').strip() or UNCATEGORIZED
        groups.setdefault(category, []).append(item)

    sections = []
    for category in sorted(groups):
        rows = sorted(groups[category], key=lambda item: (item.sort_order or 0, item.name or ''))
        sections.append({
            'category': category,
            'items': [
                {
                    'id': item.id,
                    'name': item.name,
                    'in_stock': bool(item.in_stock),
                    'price_cents': item.price_cents or 0,
                    'badge': item.badge or '',
                }
                for item in rows
            ],
        })
    return sections


def set_in_stock(session, item_id: int, in_stock: bool) -> MenuItem:
    item = get_menu_item(session, item_id)
    item.in_stock = in_stock
    _commit(session, item_id, 'toggle stock for')
    logger.info(f"[MENU] Item {item_id} in_stock={in_stock}")
    return item


def update_menu_item(session, item_id: int, changes: Dict[str, Any]) -> MenuItem:
    """
    Partial update of a menu item.

    Editable: name, category, price_cents, badge, tag, promo_excluded,
    is_active, in_stock, sort_order.
    """
    update = {}

    for field in ('is_active', 'in_stock', 'promo_excluded'):
        if field in changes:
            if not isinstance(changes[field], bool):
                raise ValidationError(f"{field} must be a boolean.")
            update[field] = changes[field]

    if 'price_cents' in changes:
        price = to_int_or_none(changes['price_cents'])
        if price is None or price < 0:
            raise ValidationError("price_cents must be an integer >= 0.")
        update['price_cents'] = price

    if 'sort_order' in changes:
        sort_order = to_int_or_none(changes['sort_order'])
        if sort_order is None:
            raise ValidationError("sort_order must be an integer.")
        update['sort_order'] = sort_order

    if 'badge' in changes:
        badge = changes['badge']
        if badge is not None and not isinstance(badge, str):
            raise ValidationError("badge must be a string.")
        badge = (badge or '').strip()
        if len(badge) > BADGE_MAX_LEN:
            raise ValidationError(f"badge must be {BADGE_MAX_LEN} characters or less.")
        update['badge'] = badge or None

    for field in ('name', 'category'):
        if field in changes:
            value = changes[field]
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(f"{field} must be a non-empty string.")
            update[field] = value.strip()

    if 'tag' in changes:
        try:
            update['tag'] = MenuItemTag(changes['tag']).value
        except ValueError:
            allowed = ', '.join(tag.value for tag in MenuItemTag)
            raise ValidationError(f"tag must be one of: {allowed}.")

    if not update:
        raise ValidationError("No valid fields provided.")

    item = get_menu_item(session, item_id)
    for field, value in update.items():
        setattr(item, field, value)
    _commit(session, item_id, 'update')
    logger.info(f"[MENU] Item {item_id} updated {sorted(update.keys())}")
    return item
