"""Small maintenance utilities: create tables, seed sample data, create an admin."""
import argparse
import logging
from datetime import date

from app.core import security
from app.core.config import settings
from app.core.database import SessionLocal
from app.core.init_db import create_tables, seed_roles
from app.models import models

logger = logging.getLogger("library")


def seed_sample_data(db):
    # idempotent: only fills empty tables
    if db.query(models.Publisher).count() == 0:
        db.add(models.Publisher(publisher_name="Penguin"))
    if db.query(models.Author).count() == 0:
        db.add(models.Author(author_name="Jane Doe"))
    db.flush()
    if db.query(models.Book).count() == 0:
        publisher = db.query(models.Publisher).order_by(models.Publisher.id).first()
        author = db.query(models.Author).order_by(models.Author.id).first()
        book = models.Book(book_name="Dune", genre="Science Fiction", publisher_id=publisher.id,
                           publish_date=date(1965, 8, 1), language="English", edition="1st",
                           book_cost=9.99, number_of_pages=412, actual_stocks=3, ratings=4.5,
                           description="Desert planet, spice and politics.")
        book.book_authors.append(models.BookAuthor(author=author, position=0))
        db.add(book)
    db.commit()


def create_admin(db, email, password, first_name="Library", last_name="Admin"):
    if db.query(models.User).filter(models.User.email == email).first():
        raise SystemExit(f"User {email} already exists")
    role = db.query(models.Role).filter(models.Role.name == models.ROLE_ADMIN).one()
    user = models.User(user_name=email, email=email, password_hash=security.hash_password(password),
                       first_name=first_name, last_name=last_name, email_confirmed=True)
    user.user_roles.append(models.UserRole(role=role))
    db.add(user)
    db.commit()
    return user


def main(argv=None):
    parser = argparse.ArgumentParser(description='Online library utilities')
    parser.add_argument('--initdb', action='store_true', help='Create tables and seed roles')
    parser.add_argument('--seed', action='store_true', help='Seed sample catalog data')
    parser.add_argument('--create-admin', nargs=2, metavar=('EMAIL', 'PASSWORD'),
                        help='Create a confirmed admin account')
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level,
                        format="%(asctime)s %(levelname)s %(name)s - %(message)s")
    create_tables()
    db = SessionLocal()
    try:
        seed_roles(db)
        if args.seed:
            seed_sample_data(db)
            logger.info('Seeded sample data')
        if args.create_admin:
            user = create_admin(db, *args.create_admin)
            logger.info(f'Created admin id={user.id} email={user.email}')
    finally:
        db.close()
    print('Done')


if __name__ == '__main__':
    main()
