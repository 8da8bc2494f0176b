# Product Data Explorer dashboard
# Health and overview metrics, per-category table, top authors and a product browser.

import os
import requests
import pandas as pd
import streamlit as st
from dotenv import load_dotenv
load_dotenv()

API = os.getenv("API_BASE", "http://localhost:8000")

st.set_page_config(page_title="Product Data Explorer", layout="wide")
st.title("Product Data Explorer")

def get_json(path: str, **params):
    url = f"{API}{path}"
    r = requests.get(url, params={k: v for k, v in params.items() if v not in (None, "")}, timeout=15)
    r.raise_for_status()
    return r.json()

# --- Health ---
try:
    health = get_json("/api/v1/health")
    c1, c2, c3 = st.columns(3)
    c1.metric("Status", health.get("status", "unknown"))
    c2.metric("Products", health.get("products", 0))
    c3.metric("Last scraped", health.get("last_scraped_at") or "n/a")
except requests.RequestException as e:
    st.error(f"Health check failed: {e}")

st.divider()

# --- Overview ---
st.subheader("Overview")
try:
    ov = get_json("/api/v1/stats/overview")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total books", ov.get("total_products", 0))
    c2.metric("With cover image", f"{ov.get('image_coverage_pct', 0):.1f}%")
    c3.metric("With details", f"{ov.get('detail_coverage_pct', 0):.1f}%")
    c4.metric("Average price", f"{ov.get('avg_price', 0):.2f}")
    st.caption(f"Price range: {ov.get('min_price', 0):.2f} – {ov.get('max_price', 0):.2f}")
except requests.RequestException as e:
    st.error(f"Overview failed: {e}")

left, right = st.columns(2)

# --- By category ---
with left:
    st.subheader("Per-category statistics")
    try:
        cats = get_json("/api/v1/stats/categories")
        if cats:
            dfc = pd.DataFrame(cats)
            st.bar_chart(dfc[dfc["count"] > 0].set_index("category")["count"])
            st.dataframe(dfc, use_container_width=True)
        else:
            st.info("No category data available.")
    except requests.RequestException as e:
        st.error(f"Category stats failed: {e}")

# --- Authors ---
with right:
    st.subheader("Top authors")
    try:
        authors = get_json("/api/v1/stats/authors", limit=15)
        if authors:
            st.dataframe(pd.DataFrame(authors), use_container_width=True)
        else:
            st.info("No authors yet.")
    except requests.RequestException as e:
        st.error(f"Author stats failed: {e}")

st.divider()

# --- Browser ---
st.subheader("Browse products")
try:
    categories = get_json("/api/v1/categories")
except requests.RequestException as e:
    categories = []
    st.error(f"Categories failed: {e}")

slugs = {c["title"]: c["slug"] for c in categories if c.get("product_count")}
f1, f2, f3 = st.columns([2, 2, 1])
search = f1.text_input("Search title or author")
category_title = f2.selectbox("Category", ["All"] + sorted(slugs))
page_no = f3.number_input("Page", min_value=1, value=1, step=1)
page_size = 20

try:
    page = get_json(
        "/api/v1/products",
        search=search,
        category=slugs.get(category_title),
        limit=page_size,
        offset=(int(page_no) - 1) * page_size,
    )
    items = page.get("items", [])
    st.caption(f"{page.get('total', 0)} matching products")
    if items:
        dfp = pd.DataFrame([
            {
                "id": p["id"],
                "title": p["title"],
                "author": p.get("author"),
                "price": p.get("price"),
                "currency": p.get("currency"),
                "category": (p.get("category") or {}).get("title"),
                "in_stock": p.get("in_stock"),
            }
            for p in items
        ])
        st.dataframe(dfp, use_container_width=True, hide_index=True)

        chosen = st.selectbox("Show details for", dfp["id"], format_func=lambda i: dfp.set_index("id").loc[i, "title"])
        product = get_json(f"/api/v1/products/{chosen}")
        detail = product.get("detail") or {}
        img, info = st.columns([1, 3])
        if product.get("image_url"):
            img.image(product["image_url"], width=180)
        info.markdown(f"### {product['title']}")
        info.write(f"by {product.get('author') or 'Unknown'}")
        info.write(f"{product.get('currency')} {product.get('price')} · {'In stock' if product.get('in_stock') else 'Out of stock'}")
        if detail.get("isbn"):
            info.write(f"ISBN: `{detail['isbn']}`")
        if detail.get("publisher"):
            info.write(f"Publisher: {detail['publisher']}")
        if detail.get("genres"):
            info.write("Genres: " + ", ".join(detail["genres"]))
        if detail.get("description"):
            info.write(detail["description"])
        if detail.get("ratings_avg") is not None:
            info.write(f"Rating {detail['ratings_avg']:.1f}/5 ({detail.get('reviews_count', 0)} reviews)")
        for rev in product.get("reviews", []):
            st.markdown(f"**{rev.get('author') or 'Anonymous'}** · {rev.get('rating')}/5  \n{rev.get('text') or ''}")
        if product.get("source_url"):
            info.markdown(f"[View on storefront]({product['source_url']})")
    else:
        st.info("No products match.")
except requests.RequestException as e:
    st.error(f"Product browser failed: {e}")

st.caption(f"API base: {API}")
