import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from sqlalchemy.orm import Session, joinedload, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.api.deps import require_admin
from app.core.database import get_db
from app.models import models
from app.schemas import schemas
from app.services.media import MediaStorage, base_name, get_media_storage, is_safe_segment

logger = logging.getLogger("library.catalog")

router = APIRouter(prefix="/api/AdminBookController", tags=["catalog"])


# -----------------------------
# Helpers
# -----------------------------
def book_form(book_name: str = Form(..., min_length=1),
              genre: str = Form(..., min_length=1),
              publisher_id: int = Form(...),
              publish_date: Optional[date] = Form(None),
              language: Optional[str] = Form(None),
              edition: Optional[str] = Form(None),
              book_cost: float = Form(0, ge=0),
              number_of_pages: int = Form(0, ge=0),
              description: Optional[str] = Form(None),
              actual_stocks: int = Form(0, ge=0),
              ratings: float = Form(0, ge=0),
              author_ids: List[int] = Form([])) -> schemas.BookIn:
    try:
        return schemas.BookIn(book_name=book_name, genre=genre, publisher_id=publisher_id,
                              publish_date=publish_date, language=language, edition=edition,
                              book_cost=book_cost, number_of_pages=number_of_pages,
                              description=description, actual_stocks=actual_stocks,
                              ratings=ratings, author_ids=author_ids)
    except ValidationError as e:
        raise HTTPException(status_code=400,
                            detail=jsonable_encoder(e.errors(include_url=False, include_context=False)))


def _books_query(db: Session):
    return db.query(models.Book).options(
        joinedload(models.Book.publisher),
        selectinload(models.Book.book_authors).joinedload(models.BookAuthor.author),
        selectinload(models.Book.book_images),
    )


def book_out(book: models.Book) -> schemas.BookOut:
    links = [ba for ba in book.book_authors if ba.author is not None]
    return schemas.BookOut(
        id=book.id,
        book_name=book.book_name,
        genre=book.genre,
        publisher_id=book.publisher_id,
        publisher=book.publisher.publisher_name if book.publisher else None,
        publish_date=book.publish_date,
        language=book.language,
        edition=book.edition,
        book_cost=book.book_cost,
        number_of_pages=book.number_of_pages,
        description=book.description,
        actual_stocks=book.actual_stocks,
        ratings=book.ratings,
        author_ids=[ba.author_id for ba in links],
        authors=[ba.author.author_name for ba in links],
        images=[img.image_url for img in book.book_images],
    )


def _unique(ids):
    seen = []
    for i in ids:
        if i not in seen:
            seen.append(i)
    return seen


def _real_uploads(images):
    uploads = [img for img in (images or []) if img is not None and img.filename]
    for img in uploads:
        if not is_safe_segment(base_name(img.filename)):
            raise HTTPException(status_code=400, detail=f"Invalid image file name '{img.filename}'.")
    return uploads


def _require_publisher(db: Session, publisher_id: int):
    publisher = db.get(models.Publisher, publisher_id)
    if not publisher:
        raise HTTPException(status_code=404, detail=f"Publisher with Id = '{publisher_id}' does not exist.")
    return publisher


def _require_authors(db: Session, author_ids):
    authors = []
    for author_id in author_ids:
        author = db.get(models.Author, author_id)
        if not author:
            raise HTTPException(status_code=404, detail=f"Author Id '{author_id}' does not exist.")
        authors.append(author)
    return authors


def _copy_fields(book: models.Book, book_in: schemas.BookIn):
    for k, v in book_in.model_dump(exclude={"author_ids"}).items():
        setattr(book, k, v)


# -----------------------------
# Books
# -----------------------------
@router.get("/getAllBooksWithAuthorId", response_model=List[schemas.BookOut])
def list_books(db: Session = Depends(get_db)):
    books = _books_query(db).order_by(models.Book.id).all()
    return [book_out(b) for b in books]


@router.get("/GetBookById/{book_id}", response_model=schemas.BookOut)
def get_book(book_id: int, db: Session = Depends(get_db)):
    book = _books_query(db).filter(models.Book.id == book_id).first()
    if not book:
        raise HTTPException(status_code=404, detail=f"Book with Id = '{book_id}' not found.")
    return book_out(book)


@router.post("/addbook", response_model=schemas.BookOut)
def create_book(book_in: schemas.BookIn = Depends(book_form),
                images: Optional[List[UploadFile]] = File(None),
                db: Session = Depends(get_db),
                media: MediaStorage = Depends(get_media_storage),
                admin=Depends(require_admin)):
    existing = db.query(models.Book).filter(models.Book.book_name == book_in.book_name).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"Book with name '{book_in.book_name}' already exists.")
    _require_publisher(db, book_in.publisher_id)
    authors = _require_authors(db, _unique(book_in.author_ids))

    book = models.Book()
    _copy_fields(book, book_in)
    for position, author in enumerate(authors):
        book.book_authors.append(models.BookAuthor(author=author, position=position))
    for image in _real_uploads(images):
        url = media.store(image.file.read(), book.book_name, image.filename)
        book.book_images.append(models.BookImage(image_url=url))

    db.add(book)
    db.commit()
    logger.info(f"Created book id={book.id} name={book.book_name} by {admin.identity}")
    return book_out(_books_query(db).filter(models.Book.id == book.id).one())


@router.put("/updatebook/{book_id}", response_model=schemas.BookOut)
def update_book(book_id: int,
                book_in: schemas.BookIn = Depends(book_form),
                images: Optional[List[UploadFile]] = File(None),
                db: Session = Depends(get_db),
                media: MediaStorage = Depends(get_media_storage),
                admin=Depends(require_admin)):
    book = _books_query(db).filter(models.Book.id == book_id).first()
    if not book:
        raise HTTPException(status_code=404, detail=f"Book with Id = '{book_id}' not found.")
    _require_publisher(db, book_in.publisher_id)
    clash = db.query(models.Book).filter(models.Book.book_name == book_in.book_name,
                                         models.Book.id != book_id).first()
    if clash:
        raise HTTPException(status_code=409, detail=f"Book with name '{book_in.book_name}' already exists.")

    requested = _unique(book_in.author_ids)
    existing_ids = [ba.author_id for ba in book.book_authors]
    new_authors = _require_authors(db, [a for a in requested if a not in existing_ids])

    old_name = book.book_name
    _copy_fields(book, book_in)

    for link in list(book.book_authors):
        if link.author_id not in requested:
            book.book_authors.remove(link)
    position = max([ba.position or 0 for ba in book.book_authors], default=-1)
    for author in new_authors:
        position += 1
        book.book_authors.append(models.BookAuthor(author=author, position=position))

    # images are replaced wholesale by the uploaded set, which may be empty
    for img in list(book.book_images):
        book.book_images.remove(img)
    uploads = _real_uploads(images)
    if uploads:
        if old_name != book.book_name:
            media.delete_all(old_name)
        # one wipe per request, then every upload lands in the fresh directory
        media.wipe(book.book_name)
        for image in uploads:
            url = media.store(image.file.read(), book.book_name, image.filename)
            book.book_images.append(models.BookImage(image_url=url))

    try:
        db.commit()
    except StaleDataError:
        db.rollback()
        if not db.query(models.Book.id).filter(models.Book.id == book_id).first():
            raise HTTPException(status_code=404, detail=f"Book with Id = '{book_id}' not found.")
        raise
    logger.info(f"Updated book id={book_id} by {admin.identity}")
    return book_out(_books_query(db).filter(models.Book.id == book_id).one())


@router.delete("/deleteBook/{book_id}")
def delete_book(book_id: int,
                db: Session = Depends(get_db),
                media: MediaStorage = Depends(get_media_storage),
                admin=Depends(require_admin)):
    book = db.get(models.Book, book_id)
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    # the row only goes when its image directory did
    if not media.delete_all(book.book_name):
        raise HTTPException(status_code=400, detail="Book cannot be deleted.")
    db.delete(book)
    db.commit()
    logger.info(f"Deleted book id={book_id} by {admin.identity}")
    return {"ok": True, "message": "Book deleted successfully."}


@router.get("/category", response_model=List[schemas.BookOut])
def list_books_by_genre(genres: List[str] = Query([]),
                        search: Optional[str] = Query(None),
                        db: Session = Depends(get_db)):
    query = _books_query(db).filter(models.Book.genre.in_(genres))
    if search:
        query = query.filter(models.Book.book_name.ilike(f"%{search}%"))
    books = query.order_by(models.Book.id).all()
    if not books:
        return Response(status_code=204)
    return [book_out(b) for b in books]


# -----------------------------
# Authors
# -----------------------------
def _all_authors(db: Session):
    return db.query(models.Author).order_by(models.Author.id).all()


@router.get("/getAllAuthor", response_model=List[schemas.AuthorOut])
def list_authors(db: Session = Depends(get_db)):
    return _all_authors(db)


@router.get("/getauthorbyid/{author_id}", response_model=schemas.AuthorOut)
def get_author(author_id: int, db: Session = Depends(get_db)):
    author = db.get(models.Author, author_id)
    if not author:
        raise HTTPException(status_code=404, detail="Author not found")
    return author


@router.post("/addAuthor", response_model=List[schemas.AuthorOut])
def create_author(author_in: schemas.AuthorIn, db: Session = Depends(get_db), admin=Depends(require_admin)):
    existing = db.query(models.Author).filter(models.Author.author_name == author_in.author_name).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"Author with name '{author_in.author_name}' already exists.")
    author = models.Author(author_name=author_in.author_name)
    db.add(author)
    db.commit()
    logger.info(f"Created author id={author.id} name={author.author_name}")
    return _all_authors(db)


@router.put("/updateAuthor/{author_id}", response_model=List[schemas.AuthorOut])
def update_author(author_id: int, author_in: schemas.AuthorIn,
                  db: Session = Depends(get_db), admin=Depends(require_admin)):
    author = db.get(models.Author, author_id)
    if not author:
        raise HTTPException(status_code=404, detail="Author Not Exists")
    clash = db.query(models.Author).filter(models.Author.author_name == author_in.author_name,
                                           models.Author.id != author_id).first()
    if clash:
        raise HTTPException(status_code=409, detail=f"Author with name '{author_in.author_name}' already exists.")
    author.author_name = author_in.author_name
    db.commit()
    logger.info(f"Updated author id={author_id}")
    return _all_authors(db)


@router.delete("/deleteAuthor/{author_id}", response_model=List[schemas.AuthorOut])
def delete_author(author_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    author = db.get(models.Author, author_id)
    if not author:
        raise HTTPException(status_code=404, detail="Author does not exist.")
    db.delete(author)
    db.commit()
    logger.info(f"Deleted author id={author_id}")
    return _all_authors(db)


# -----------------------------
# Publishers
# -----------------------------
def _all_publishers(db: Session):
    return db.query(models.Publisher).order_by(models.Publisher.id).all()


@router.get("/getAllPublisher", response_model=List[schemas.PublisherOut])
def list_publishers(db: Session = Depends(get_db)):
    return _all_publishers(db)


@router.get("/getpublisherbyid/{publisher_id}", response_model=schemas.PublisherOut)
def get_publisher(publisher_id: int, db: Session = Depends(get_db)):
    publisher = db.get(models.Publisher, publisher_id)
    if not publisher:
        raise HTTPException(status_code=404, detail="Publisher not found")
    return publisher


@router.post("/addPublisher", response_model=List[schemas.PublisherOut])
def create_publisher(publisher_in: schemas.PublisherIn, db: Session = Depends(get_db),
                     admin=Depends(require_admin)):
    existing = db.query(models.Publisher).filter(
        models.Publisher.publisher_name == publisher_in.publisher_name).first()
    if existing:
        raise HTTPException(status_code=409,
                            detail=f"Publisher with name '{publisher_in.publisher_name}' already exists.")
    publisher = models.Publisher(publisher_name=publisher_in.publisher_name)
    db.add(publisher)
    db.commit()
    logger.info(f"Created publisher id={publisher.id} name={publisher.publisher_name}")
    return _all_publishers(db)


@router.put("/updatePublisher/{publisher_id}", response_model=List[schemas.PublisherOut])
def update_publisher(publisher_id: int, publisher_in: schemas.PublisherIn,
                     db: Session = Depends(get_db), admin=Depends(require_admin)):
    publisher = db.get(models.Publisher, publisher_id)
    if not publisher:
        raise HTTPException(status_code=404, detail="Publisher Not Exists")
    clash = db.query(models.Publisher).filter(models.Publisher.publisher_name == publisher_in.publisher_name,
                                              models.Publisher.id != publisher_id).first()
    if clash:
        raise HTTPException(status_code=409,
                            detail=f"Publisher with name '{publisher_in.publisher_name}' already exists.")
    publisher.publisher_name = publisher_in.publisher_name
    db.commit()
    logger.info(f"Updated publisher id={publisher_id}")
    return _all_publishers(db)


@router.delete("/deletePublisher/{publisher_id}", response_model=List[schemas.PublisherOut])
def delete_publisher(publisher_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    publisher = db.get(models.Publisher, publisher_id)
    if not publisher:
        raise HTTPException(status_code=404, detail="Publisher does not exist.")
    db.delete(publisher)
    db.commit()
    logger.info(f"Deleted publisher id={publisher_id}")
    return _all_publishers(db)
