from flask import current_app

from .content import DEFAULT_HERO, DEFAULT_PRODUCTS, DEFAULT_SERVICES
from .models import db, HeroContent, Product, Service, SERVICE_STATUS_ACTIVE


def seed_hero():
    # The hero section is a singleton row; create it once and edit in place afterwards.
    if HeroContent.query.first():
        return False
    db.session.add(HeroContent(**DEFAULT_HERO))
    return True


def seed_services():
    if Service.query.first():
        return False
    for index, (title, description) in enumerate(DEFAULT_SERVICES, start=1):
        db.session.add(Service(
            title=title,
            description=description,
            status=SERVICE_STATUS_ACTIVE,
            sort_order=index,
        ))
    return True


def seed_products():
    if Product.query.first():
        return False
    for name, category, description, featured in DEFAULT_PRODUCTS:
        db.session.add(Product(name=name, category=category, description=description, featured=featured))
    return True


def seed_database(include_catalog=True):
    seeded = [seed_hero()]
    if include_catalog:
        seeded.append(seed_services())
        seeded.append(seed_products())
    if any(seeded):
        db.session.commit()
        current_app.logger.info('Seeded default site content.')
