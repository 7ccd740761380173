"""
Notification email templates.

Templates are plain strings with ``{variable}`` placeholders. Every value is
HTML escaped before substitution into the HTML body; the text body gets the
raw values.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from html import escape
from urllib.parse import urlencode

from restock_service.infrastructure.email.base import EmailMessage


@dataclass(frozen=True)
class EmailTemplate:
    subject: str
    html_body: str
    text_body: str

    def render(self, **values: object) -> EmailMessage:
        escaped = {key: escape(str(value), quote=True) for key, value in values.items()}
        return EmailMessage(
            subject=self.subject.format(**values),
            html_body=self.html_body.format(**escaped),
            text_body=self.text_body.format(**values),
        )


# =============================================================================
# Template Definitions
# =============================================================================

BACK_IN_STOCK = EmailTemplate(
    subject="{product_name} is back in stock!",
    html_body="""\
<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #000; color: #fff; padding: 20px; text-align: center;">
      <h1>Great News!</h1>
    </div>
    <div style="background: #f9f9f9; padding: 30px; margin: 20px 0;">
      <h2>{product_name} is back in stock!</h2>
      <p>The product you were waiting for is now available at {shop}.</p>
      <p>Hurry! Stock is limited and might sell out quickly.</p>
      <p style="text-align: center;">
        <a href="{click_url}" style="display: inline-block; background: #000; color: #fff; padding: 15px 30px; text-decoration: none; border-radius: 5px;">Shop Now</a>
      </p>
    </div>
    <p style="text-align: center; color: #666; font-size: 12px;">
      You received this email because you subscribed to back-in-stock notifications.<br>
      &copy; {year} {shop}
    </p>
  </div>
  <img src="{open_url}" width="1" height="1" style="display:none;" alt="" />
</body>
</html>
""",
    text_body="{product_name} is back in stock! Visit {click_url} to purchase now.",
)

PRICE_DROP = EmailTemplate(
    subject="Price Drop: {product_name} - Save {percentage_off}%!",
    html_body="""\
<!DOCTYPE html>
<html>
<body style="background-color: #f3f4f6; padding: 40px 0; font-family: sans-serif;">
  <div style="max-width: 550px; margin: 0 auto; background: #fff; border-radius: 24px; padding: 40px; text-align: center;">
    <h1 style="color: #111827;">Price Drop Alert!</h1>
    <p style="color: #6b7280;">The price just dropped at <strong>{shop}</strong>.</p>
    <h2 style="color: #111827;">{product_name}</h2>
    <p>
      <span style="color: #9ca3af; text-decoration: line-through;">{old_price}</span>
      <span style="color: #111827; font-size: 28px; font-weight: 900;">{new_price}</span>
    </p>
    <p style="color: #10b981; font-weight: bold;">Save {percentage_off}%</p>
    <a href="{product_url}" style="display: inline-block; background-color: #10b981; color: white; padding: 16px 40px; border-radius: 12px; text-decoration: none; font-weight: bold;">Shop Now &amp; Save</a>
    <p style="color: #9ca3af; font-size: 12px;">You're receiving this because you subscribed to alerts for this product.</p>
  </div>
</body>
</html>
""",
    text_body=(
        "{product_name} dropped from {old_price} to {new_price} "
        "(save {percentage_off}%). Shop now: {product_url}"
    ),
)


# =============================================================================
# Rendering helpers
# =============================================================================


def product_display_name(product_title: str | None, variant_title: str | None) -> str:
    """'Product - Variant', skipping Shopify's placeholder variant title."""
    name = product_title or "Your product"
    if variant_title and variant_title != "Default Title":
        name = f"{name} - {variant_title}"
    return name


def tracking_urls(app_url: str, subscription_id: int, target_url: str) -> tuple[str, str]:
    """Build (open_url, click_url) beacon links for a subscription."""
    open_url = f"{app_url}/api/v1/track/open?{urlencode({'id': subscription_id})}"
    click_url = (
        f"{app_url}/api/v1/track/click?"
        f"{urlencode({'id': subscription_id, 'url': target_url})}"
    )
    return open_url, click_url


def render_back_in_stock(
    *,
    shop: str,
    product_title: str | None,
    variant_title: str | None,
    open_url: str,
    click_url: str,
) -> EmailMessage:
    return BACK_IN_STOCK.render(
        product_name=product_display_name(product_title, variant_title),
        shop=shop,
        open_url=open_url,
        click_url=click_url,
        year=datetime.now(timezone.utc).year,
    )


def render_price_drop(
    *,
    shop: str,
    product_title: str | None,
    variant_title: str | None,
    old_price: float,
    new_price: float,
    percentage_off: int,
    product_url: str,
) -> EmailMessage:
    return PRICE_DROP.render(
        product_name=product_display_name(product_title, variant_title),
        shop=shop,
        old_price=f"{old_price:.2f}",
        new_price=f"{new_price:.2f}",
        percentage_off=percentage_off,
        product_url=product_url,
    )
