"""Store state, named transitions, and the pure reducer that applies them.

Every change to catalog view, cart or discount goes through ``reduce``, which
never mutates its input.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace

from shopfront_lite.search.query_parser import tokenize
from shopfront_lite.storage.models import CartLine, NegotiatedDiscount, Product, SortOrder

ALL_CATEGORIES = "All"


@dataclass(frozen=True, slots=True)
class StoreState:
    all_products: tuple[Product, ...] = ()
    products: tuple[Product, ...] = ()  # current view
    cart: tuple[CartLine, ...] = ()
    discount: NegotiatedDiscount = field(default_factory=NegotiatedDiscount)
    current_category: str = ALL_CATEGORIES
    sort_order: str = SortOrder.RELEVANCE
    last_added: Product | None = None
    is_cart_open: bool = False
    is_search_open: bool = False

    def find_line(self, product_id: str) -> CartLine | None:
        return next((ln for ln in self.cart if ln.product.id == product_id), None)

    def find_product(self, product_id: str) -> Product | None:
        return next((p for p in self.all_products if p.id == product_id), None)


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SetCatalog:
    products: tuple[Product, ...]


@dataclass(frozen=True, slots=True)
class AddToCart:
    product: Product
    quantity: int = 1


@dataclass(frozen=True, slots=True)
class RemoveFromCart:
    product_id: str


@dataclass(frozen=True, slots=True)
class UpdateQuantity:
    product_id: str
    quantity: int


@dataclass(frozen=True, slots=True)
class RestoreCart:
    lines: tuple[CartLine, ...]
    discount: NegotiatedDiscount


@dataclass(frozen=True, slots=True)
class FilterByCategory:
    category: str


@dataclass(frozen=True, slots=True)
class SearchProducts:
    query: str


@dataclass(frozen=True, slots=True)
class ApplySearchResult:
    product_ids: tuple[str, ...] = ()
    query: str | None = None
    category: str | None = None


@dataclass(frozen=True, slots=True)
class SetSortOrder:
    order: str


@dataclass(frozen=True, slots=True)
class ApplyDiscount:
    coupon_code: str | None
    percent: float


@dataclass(frozen=True, slots=True)
class ClearCart:
    pass


@dataclass(frozen=True, slots=True)
class ClearLastAdded:
    pass


@dataclass(frozen=True, slots=True)
class ToggleCart:
    pass


@dataclass(frozen=True, slots=True)
class OpenCart:
    pass


@dataclass(frozen=True, slots=True)
class ToggleSearch:
    pass


Action = (
    SetCatalog
    | AddToCart
    | RemoveFromCart
    | UpdateQuantity
    | RestoreCart
    | FilterByCategory
    | SearchProducts
    | ApplySearchResult
    | SetSortOrder
    | ApplyDiscount
    | ClearCart
    | ClearLastAdded
    | ToggleCart
    | OpenCart
    | ToggleSearch
)

_HANDLERS: dict[type, Callable[[StoreState, object], StoreState]] = {}


def _handles(action_type: type) -> Callable:
    def register(fn: Callable) -> Callable:
        _HANDLERS[action_type] = fn
        return fn

    return register


def reduce(state: StoreState, action: Action) -> StoreState:
    """Apply one transition. Unknown actions leave the state unchanged."""
    handler = _HANDLERS.get(type(action))
    if handler is None:
        return state
    return handler(state, action)


def _never_blank(state: StoreState, view: list[Product] | tuple[Product, ...]) -> tuple[Product, ...]:
    # An empty narrowing shows the full catalog instead of a dead end.
    return tuple(view) if view else state.all_products


# ---------------------------------------------------------------------------
# Catalog view
# ---------------------------------------------------------------------------


@_handles(SetCatalog)
def _set_catalog(state: StoreState, action: SetCatalog) -> StoreState:
    products = tuple(action.products)
    return replace(state, all_products=products, products=products)


@_handles(FilterByCategory)
def _filter_by_category(state: StoreState, action: FilterByCategory) -> StoreState:
    if action.category == ALL_CATEGORIES:
        return replace(state, current_category=ALL_CATEGORIES, products=state.all_products)
    view = [p for p in state.all_products if p.category == action.category]
    return replace(state, current_category=action.category, products=_never_blank(state, view))


@_handles(SearchProducts)
def _search_products(state: StoreState, action: SearchProducts) -> StoreState:
    query = action.query.lower()
    view = [
        p
        for p in state.all_products
        if query in p.name.lower()
        or query in p.description.lower()
        or any(query in t.lower() for t in p.tags)
    ]
    return replace(state, products=_never_blank(state, view))


@_handles(ApplySearchResult)
def _apply_search_result(state: StoreState, action: ApplySearchResult) -> StoreState:
    view: list[Product] = list(state.all_products)
    narrowed_by_ids = False

    if action.product_ids:
        by_id = {p.id.lower(): p for p in state.all_products}
        seen: set[str] = set()
        ranked: list[Product] = []
        for pid in action.product_ids:
            key = str(pid).lower()
            if key in by_id and key not in seen:
                seen.add(key)
                ranked.append(by_id[key])
        if ranked:
            view = ranked
            narrowed_by_ids = len(ranked) < len(state.all_products)

    if not narrowed_by_ids:
        if action.category and action.category != ALL_CATEGORIES:
            view = [p for p in view if p.category == action.category]
        if action.query:
            words = tokenize(action.query)
            if words:
                by_words = [p for p in view if any(w in p.searchable_text.lower() for w in words)]
                if by_words:
                    view = by_words

    return replace(state, products=_never_blank(state, view))


@_handles(SetSortOrder)
def _set_sort_order(state: StoreState, action: SetSortOrder) -> StoreState:
    view = list(state.products)
    if action.order == SortOrder.PRICE_LOW:
        view.sort(key=lambda p: p.price)
    elif action.order == SortOrder.PRICE_HIGH:
        view.sort(key=lambda p: p.price, reverse=True)
    return replace(state, sort_order=action.order, products=tuple(view))


# ---------------------------------------------------------------------------
# Cart
# ---------------------------------------------------------------------------


@_handles(AddToCart)
def _add_to_cart(state: StoreState, action: AddToCart) -> StoreState:
    if action.quantity < 1:
        return state
    product = action.product
    if state.find_line(product.id) is not None:
        cart = tuple(
            CartLine(product=ln.product, quantity=ln.quantity + action.quantity)
            if ln.product.id == product.id
            else ln
            for ln in state.cart
        )
    else:
        cart = (*state.cart, CartLine(product=product, quantity=action.quantity))
    return replace(state, cart=cart, last_added=product, is_cart_open=True)


@_handles(RemoveFromCart)
def _remove_from_cart(state: StoreState, action: RemoveFromCart) -> StoreState:
    cart = tuple(ln for ln in state.cart if ln.product.id != action.product_id)
    return replace(state, cart=cart)


@_handles(UpdateQuantity)
def _update_quantity(state: StoreState, action: UpdateQuantity) -> StoreState:
    quantity = max(0, action.quantity)
    cart: list[CartLine] = []
    for ln in state.cart:
        if ln.product.id != action.product_id:
            cart.append(ln)
        elif quantity > 0:
            cart.append(CartLine(product=ln.product, quantity=quantity))
    return replace(state, cart=tuple(cart))


@_handles(RestoreCart)
def _restore_cart(state: StoreState, action: RestoreCart) -> StoreState:
    merged: dict[str, CartLine] = {}
    for ln in action.lines:
        existing = merged.get(ln.product.id)
        quantity = ln.quantity + (existing.quantity if existing else 0)
        merged[ln.product.id] = CartLine(product=ln.product, quantity=quantity)
    return replace(state, cart=tuple(merged.values()), discount=action.discount)


@_handles(ApplyDiscount)
def _apply_discount(state: StoreState, action: ApplyDiscount) -> StoreState:
    percent = min(100.0, max(0.0, float(action.percent)))
    return replace(
        state, discount=NegotiatedDiscount(percent=percent, coupon_code=action.coupon_code)
    )


@_handles(ClearCart)
def _clear_cart(state: StoreState, action: ClearCart) -> StoreState:
    return replace(state, cart=(), discount=NegotiatedDiscount())


@_handles(ClearLastAdded)
def _clear_last_added(state: StoreState, action: ClearLastAdded) -> StoreState:
    return replace(state, last_added=None)


# ---------------------------------------------------------------------------
# UI toggles
# ---------------------------------------------------------------------------


@_handles(ToggleCart)
def _toggle_cart(state: StoreState, action: ToggleCart) -> StoreState:
    return replace(state, is_cart_open=not state.is_cart_open)


@_handles(OpenCart)
def _open_cart(state: StoreState, action: OpenCart) -> StoreState:
    return replace(state, is_cart_open=True)


@_handles(ToggleSearch)
def _toggle_search(state: StoreState, action: ToggleSearch) -> StoreState:
    return replace(state, is_search_open=not state.is_search_open)
