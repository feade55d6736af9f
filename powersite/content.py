"""Read-only content for the public site, with built-in fallbacks.

Each public section does exactly one read through the backend. When the
read fails, or for the hero when no row exists, the section falls back to
the defaults below so the page always renders.
"""
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote

from flask import current_app

from .backend import BackendError
from .models import SERVICE_STATUS_ACTIVE

DEFAULT_SERVICE_ICON = 'fa-solid fa-bolt'
SERVICE_ICONS = {
    'House & Commercial Wiring': 'fa-solid fa-house',
    'Electrical Repair & Maintenance': 'fa-solid fa-wrench',
    'MCB, DB Panel Installation': 'fa-solid fa-table-cells-large',
    'LED Lights & Decorative Lighting': 'fa-solid fa-lightbulb',
    'Inverter & UPS Installation': 'fa-solid fa-car-battery',
    'Industrial Electrical Work': 'fa-solid fa-industry',
    'Fault Finding & Safety Solutions': 'fa-solid fa-magnifying-glass',
    'Earthing & Load Management': 'fa-solid fa-shield-halved',
}

DEFAULT_CATEGORY = 'LED Lights'
CATEGORY_IMAGES = {
    'LED Lights': 'https://images.unsplash.com/photo-1565814329452-e1efa11c5b89?w=400&h=300&fit=crop',
    'Switches & Sockets': 'https://images.unsplash.com/photo-1558618666-fcd25c85cd64?w=400&h=300&fit=crop',
    'MCB / DB Panels': 'https://images.unsplash.com/photo-1621905251189-08b45d6a269e?w=400&h=300&fit=crop',
    'Wires & Cables': 'https://images.unsplash.com/photo-1509281373149-e957c6296406?w=400&h=300&fit=crop',
    'Fans': 'https://images.unsplash.com/photo-1635695392513-ccc5e7e4e3b4?w=400&h=300&fit=crop',
    'Industrial Electrical Items': 'https://images.unsplash.com/photo-1581091226825-a6a2a5aee158?w=400&h=300&fit=crop',
    'Inverter & Battery': 'https://images.unsplash.com/photo-1619594455093-67f9f8a4f9b9?w=400&h=300&fit=crop',
}

DEFAULT_HERO = {
    'heading': 'Powering Homes & Businesses with Reliable Electrical Solutions',
    'subheading': (
        'Complete Electrical Services & Quality Electrical Items Under One Roof. '
        'From wiring to LED lighting - we power your world safely.'
    ),
    'cta_button_text': 'Call Now',
    'cta_phone': '+918949272586',
    'background_images': [],
}

DEFAULT_SERVICES = [
    ('House & Commercial Wiring',
     'Complete wiring solutions for residential and commercial buildings with safety compliance.'),
    ('Electrical Repair & Maintenance',
     'Quick and reliable repair services for all your electrical issues and regular maintenance.'),
    ('MCB, DB Panel Installation',
     'Professional installation of MCB boxes, distribution boards, and electrical panels.'),
    ('LED Lights & Decorative Lighting',
     'Modern LED solutions and decorative lighting for homes, offices, and events.'),
    ('Inverter & UPS Installation',
     'Power backup solutions with inverter and UPS installation and maintenance services.'),
    ('Industrial Electrical Work',
     'Heavy-duty electrical solutions for factories and industrial establishments.'),
    ('Fault Finding & Safety Solutions',
     'Expert diagnosis of electrical faults and implementation of safety measures.'),
    ('Earthing & Load Management',
     'Proper earthing installation and load balancing for optimal electrical safety.'),
]

DEFAULT_PRODUCTS = [
    ('LED Bulbs & Panels', 'LED Lights', 'Energy-efficient LED bulbs, tube lights and panel lights.', True),
    ('Modular Switches', 'Switches & Sockets', 'Modular switches and sockets from trusted brands.', True),
    ('House Wires', 'Wires & Cables', 'Fire-retardant copper wires and cables for every load.', False),
    ('MCB & Distribution Boards', 'MCB / DB Panels', 'MCBs, RCCBs and distribution boards for safe circuits.', False),
    ('Ceiling & Exhaust Fans', 'Fans', 'Ceiling, wall and exhaust fans for homes and offices.', False),
    ('Inverters & Batteries', 'Inverter & Battery', 'Inverters and tubular batteries for power backup.', False),
    ('Industrial Supplies', 'Industrial Electrical Items', 'Contactors, starters and industrial-grade fittings.', False),
]


@dataclass
class HeroView:
    heading: str
    subheading: str
    cta_button_text: str
    cta_phone: str
    background_images: List[str] = field(default_factory=list)
    is_default: bool = False

    @property
    def tel_href(self):
        return tel_link(self.cta_phone)


@dataclass
class ServiceCard:
    title: str
    description: str
    image_url: Optional[str] = None

    @property
    def icon_class(self):
        return service_icon(self.title)


@dataclass
class ProductCard:
    name: str
    category: str
    description: str
    image_url: Optional[str] = None
    featured: bool = False

    @property
    def display_image(self):
        return self.image_url or category_image(self.category)


def service_icon(title):
    return SERVICE_ICONS.get((title or '').strip(), DEFAULT_SERVICE_ICON)


def category_image(category):
    return CATEGORY_IMAGES.get(category) or CATEGORY_IMAGES[DEFAULT_CATEGORY]


def tel_link(phone):
    digits = ''.join(ch for ch in (phone or '') if ch.isdigit() or ch == '+')
    return f'tel:{digits}'


def mailto_link(email):
    return f'mailto:{(email or "").strip()}'


def whatsapp_link(phone, message=''):
    digits = ''.join(ch for ch in (phone or '') if ch.isdigit())
    url = f'https://wa.me/{digits}'
    if message:
        url = f'{url}?text={quote(message)}'
    return url


def default_hero():
    return HeroView(is_default=True, **DEFAULT_HERO)


def default_services():
    return [ServiceCard(title=title, description=description) for title, description in DEFAULT_SERVICES]


def fetch_hero(backend):
    try:
        row = backend.table('hero_section').first()
    except BackendError:
        current_app.logger.warning('Hero content unavailable, using defaults.')
        return default_hero()
    if row is None:
        return default_hero()
    return HeroView(
        heading=row.heading or DEFAULT_HERO['heading'],
        subheading=row.subheading or DEFAULT_HERO['subheading'],
        cta_button_text=row.cta_button_text or DEFAULT_HERO['cta_button_text'],
        cta_phone=row.cta_phone or DEFAULT_HERO['cta_phone'],
        background_images=list(row.background_images or []),
    )


def fetch_active_services(backend):
    try:
        rows = backend.table('services').select(order=('sort_order',), status=SERVICE_STATUS_ACTIVE)
    except BackendError:
        current_app.logger.warning('Services unavailable, using defaults.')
        return default_services()
    return [ServiceCard(title=row.title, description=row.description, image_url=row.image_url) for row in rows]


def fetch_products(backend):
    try:
        rows = backend.table('products').select(order=('-featured', '-created_at'))
    except BackendError:
        current_app.logger.warning('Products unavailable.')
        return []
    return [
        ProductCard(
            name=row.name,
            category=row.category,
            description=row.description,
            image_url=row.image_url,
            featured=bool(row.featured),
        )
        for row in rows
    ]
