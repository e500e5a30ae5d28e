"""Pydantic request/response schemas for the Subscriptions API.

These are external contracts for the storefront theme, separate from the
internal Protean commands.
"""

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Box Request Schemas
# ---------------------------------------------------------------------------
class StartBoxRequest(BaseModel):
    session_id: str | None = None
    shop: str | None = None
    milestone_config: dict | None = None
    message_overrides: dict[str, str] | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "session_id": "sess-001",
                    "shop": "meat-club.myshopify.com",
                    "milestone_config": {
                        "milestone1Items": 6,
                        "milestone1Discount": 5,
                        "milestone2Items": 10,
                        "milestone2Discount": 10,
                    },
                }
            ]
        }
    }


class LoadCatalogRequest(BaseModel):
    force: bool = False


class ShowCategoryRequest(BaseModel):
    category: str


class ChooseVariantRequest(BaseModel):
    variant_id: str


class ChooseFrequencyRequest(BaseModel):
    frequency: str = Field(examples=["2weeks", "4weeks", "6weeks"])


class ProceedToOffersRequest(BaseModel):
    customer_email: str | None = None


class CheckoutRequest(BaseModel):
    skip_offers: bool = False
    customer_email: str | None = None


class ReturnToStepRequest(BaseModel):
    step: str = Field(examples=["ProductSelection", "FrequencySelection"])


# ---------------------------------------------------------------------------
# Box Response Schemas
# ---------------------------------------------------------------------------
class BoxIdResponse(BaseModel):
    box_id: str


class VariantSchema(BaseModel):
    id: str
    title: str
    price_cents: int
    stock: int | None = None
    in_stock: bool


class ProductSchema(BaseModel):
    id: str
    title: str
    summary: str
    image: str
    variants: list[VariantSchema]
    selected_variant_id: str | None = None


class CategorySchema(BaseModel):
    key: str
    title: str
    product_ids: list[str]


class SelectedProductSchema(BaseModel):
    product_id: str
    variant_id: str
    title: str
    variant_title: str
    image: str
    unit_price_cents: int
    quantity: int
    selection_type: str


class OfferSchema(BaseModel):
    offer_id: str
    variant_id: str
    title: str
    image: str
    original_price_cents: int
    offer_price_cents: int = 0
    is_demo: bool = False
    selected: bool = False


class SummarySchema(BaseModel):
    product_count: int
    subtotal_cents: int
    discount_percentage: float
    discounted_total_cents: int
    progress_percentage: float
    next_threshold: int | None = None
    captions: list[str]
    message: str
    can_proceed: bool


class NoticeSchema(BaseModel):
    code: str
    message: str
    level: str
    dismiss_after_seconds: int


class SubmissionSchema(BaseModel):
    success: bool
    cart_token: str | None = None
    redirect_url: str | None = None
    failure_reason: str | None = None


class BoxResponse(BaseModel):
    box_id: str
    step: str
    last_interactive_step: str
    catalog_status: str
    catalog_message: str | None = None
    active_category: str | None = None
    categories: list[CategorySchema]
    products: list[ProductSchema]
    selection: list[SelectedProductSchema]
    summary: SummarySchema
    frequency: str | None = None
    frequencies: dict[str, str]
    offers: list[OfferSchema]
    customer_email: str | None = None
    failure_reason: str | None = None
    redirect_url: str | None = None
    selected: bool | None = None
    notice: NoticeSchema | None = None
    submission: SubmissionSchema | None = None


class BoxProgressResponse(BaseModel):
    box_id: str
    step: str
    catalog_status: str | None = None
    product_count: int = 0
    discount_percentage: float = 0.0
    progress_percentage: float = 0.0
    frequency: str | None = None
    offer_count: int = 0
    redirect_url: str | None = None
    failure_reason: str | None = None


# ---------------------------------------------------------------------------
# Cart Guard Schemas
# ---------------------------------------------------------------------------
class ActivateGuardRequest(BaseModel):
    page_path: str = "/"


class GuardedRequest(BaseModel):
    endpoint: str = Field(examples=["/cart/change.js"])
    payload: dict = Field(default_factory=dict)


class GuardStatusResponse(BaseModel):
    state: str
    protected_item_count: int
    suspended: bool


class GuardedResponse(BaseModel):
    intercepted: bool
    reload: bool
    notice: NoticeSchema | None = None
    response: dict
