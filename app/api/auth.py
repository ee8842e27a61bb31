import logging
from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Query, Request, UploadFile
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api.deps import CurrentUser, get_current_user
from app.core import security
from app.core.database import get_db
from app.models import models
from app.schemas import schemas
from app.services.email import EmailService, Message, get_email_service
from app.services.media import MediaStorage, base_name, get_media_storage, is_safe_segment

logger = logging.getLogger("library.auth")

router = APIRouter(prefix="/api/AuthenticationController", tags=["auth"])

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
# names also form the profile picture folder
NAME_PATTERN = r"^[^/\\]+$"


def reply(status_code: int, status: str, message: str, **extra) -> JSONResponse:
    body = schemas.StatusResponse(status=status, message=message).model_dump()
    return JSONResponse(status_code=status_code, content={**body, **extra})


def _find_user(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def _issue_token(user: models.User) -> schemas.TokenOut:
    token, expires = security.create_access_token(user.user_name, user.roles)
    return schemas.TokenOut(token=token, expiration=expires)


@router.post("")
def register(request: Request,
             role: str = Query(...),
             first_name: str = Form(..., min_length=1, pattern=NAME_PATTERN),
             middle_name: Optional[str] = Form(None),
             last_name: str = Form(..., min_length=1, pattern=NAME_PATTERN),
             email: str = Form(..., pattern=EMAIL_PATTERN),
             password: str = Form(..., min_length=6),
             phone_number: Optional[str] = Form(None),
             dob: Optional[date] = Form(None),
             gender: Optional[str] = Form(None),
             city: Optional[str] = Form(None),
             state: Optional[str] = Form(None),
             pincode: Optional[str] = Form(None),
             full_address: Optional[str] = Form(None),
             two_factor_enabled: bool = Form(False),
             profile_picture: Optional[UploadFile] = File(None),
             db: Session = Depends(get_db),
             media: MediaStorage = Depends(get_media_storage),
             mailer: EmailService = Depends(get_email_service)):
    if _find_user(db, email):
        return reply(403, "Error", "User Already Exists!")
    role_row = db.query(models.Role).filter(models.Role.name == role).first()
    if not role_row:
        return reply(500, "Error", "This Role Does Not Exists.")

    picture = "Not Uploaded"
    if profile_picture is not None and profile_picture.filename:
        folder = f"{first_name}{last_name}"
        if not is_safe_segment(folder) or not is_safe_segment(base_name(profile_picture.filename)):
            return reply(400, "Error", "Invalid name for a profile picture.")
        picture = media.store_profile_picture(profile_picture.file.read(), folder, profile_picture.filename)

    user = models.User(
        user_name=email, email=email, password_hash=security.hash_password(password),
        first_name=first_name, middle_name=middle_name, last_name=last_name,
        phone_number=phone_number, dob=dob, gender=gender, city=city, state=state,
        pincode=pincode, full_address=full_address, profile_picture=picture,
        two_factor_enabled=two_factor_enabled,
    )
    user.user_roles.append(models.UserRole(role=role_row))
    db.add(user)
    db.commit()
    logger.info(f"Registered user id={user.id} email={email} role={role}")

    token = security.create_link_token(security.CONFIRM_EMAIL, email,
                                       security.password_fingerprint(user.password_hash))
    link = request.url_for("confirm_email").include_query_params(token=token, email=email)
    mailer.send(Message([email], "Confirmation email link", str(link)))
    return reply(200, "Success", f"User created & Email has sent to {email} Successfully!!")


@router.get("", name="confirm_email")
def confirm_email(token: str = Query(...), email: str = Query(...), db: Session = Depends(get_db)):
    user = _find_user(db, email)
    if user and security.check_link_token(token, security.CONFIRM_EMAIL, email,
                                          security.password_fingerprint(user.password_hash)):
        user.email_confirmed = True
        db.commit()
        logger.info(f"Confirmed email for user id={user.id}")
        return reply(200, "Success", "Email Verified Successfully!!!")
    return reply(500, "Error", "This User Doesnot exists")


@router.post("/login", response_model=schemas.TokenOut)
def login(login_in: schemas.LoginModel,
          db: Session = Depends(get_db),
          mailer: EmailService = Depends(get_email_service)):
    user = _find_user(db, login_in.email)
    if not user or not security.verify_password(login_in.password, user.password_hash):
        logger.warning(f"Failed login for {login_in.email}")
        return reply(401, "Error", "Invalid Email or Password")

    if user.two_factor_enabled:
        code = security.generate_otp()
        user.otp_hash = security.hash_password(code)
        user.otp_expires_at = security.otp_expiry()
        db.commit()
        mailer.send(Message([user.email], "OTP Confirmation", code))
        return reply(200, "Success", f"We have sent an OTP to your email {user.email}")

    logger.info(f"User {user.user_name} logged in")
    return _issue_token(user)


@router.post("/login2FA", response_model=schemas.TokenOut)
def login_with_otp(code: Optional[str] = Query(None), email: Optional[str] = Query(None),
                   db: Session = Depends(get_db)):
    if not code or not email:
        return reply(400, "Error", "Invalid input parameters")
    user = _find_user(db, email)
    if user is None:
        return reply(404, "Error", "Invalid code")
    if not user.email_confirmed:
        return reply(401, "Error", "Email not confirmed")
    if not security.check_otp(code, user.otp_hash, user.otp_expires_at):
        logger.warning(f"Rejected OTP for {email}")
        return reply(404, "Error", "Invalid code")

    user.otp_hash = None
    user.otp_expires_at = None
    db.commit()
    logger.info(f"User {user.user_name} logged in with OTP")
    return _issue_token(user)


@router.post("/forget-password")
def forget_password(request: Request,
                    email: str = Query(...),
                    db: Session = Depends(get_db),
                    mailer: EmailService = Depends(get_email_service)):
    user = _find_user(db, email)
    if not user:
        return reply(400, "Error", f"{email} this email is not registered.")
    token = security.create_link_token(security.RESET_PASSWORD, email,
                                       security.password_fingerprint(user.password_hash))
    link = request.url_for("reset_password_form").include_query_params(token=token, email=email)
    mailer.send(Message([email], "Click this below link", str(link)))
    return reply(200, "Success",
                 f"Password Change Request Is Sent to {email}. Please Open Your Gmail And Click The Link.")


@router.get("/reset-password", name="reset_password_form")
def reset_password_form(token: str = Query(...), email: str = Query(...)):
    return {"model": {"token": token, "email": email}}


@router.post("/reset-password")
def reset_password(reset_in: schemas.ResetPassword, db: Session = Depends(get_db)):
    user = _find_user(db, reset_in.email)
    if not user:
        return reply(400, "Error", f"Couldnot send link {reset_in.email}, please try again.")

    errors = []
    if reset_in.password != reset_in.confirm_password:
        errors.append({"code": "PasswordMismatch", "description": "Passwords do not match."})
    if not security.check_link_token(reset_in.token, security.RESET_PASSWORD, reset_in.email,
                                     security.password_fingerprint(user.password_hash)):
        errors.append({"code": "InvalidToken", "description": "Invalid token."})
    if errors:
        return reply(400, "Error", "Password could not be changed.", errors=errors)

    user.password_hash = security.hash_password(reset_in.password)
    db.commit()
    logger.info(f"Password reset for user id={user.id}")
    return reply(200, "Success", "Password has been changed.")


@router.post("/logout")
def logout(current: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    if current.jti:
        db.query(models.RevokedToken).filter(models.RevokedToken.expires_at < datetime.now()).delete()
        expires_at = datetime.fromtimestamp(current.expires) if current.expires else None
        db.add(models.RevokedToken(jti=current.jti, expires_at=expires_at))
        db.commit()
    logger.info(f"User {current.identity} logged out")
    return reply(200, "Success", "Logged out.")


@router.get("/me", response_model=schemas.UserOut)
def me(current: CurrentUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return db.query(models.User).filter(models.User.user_name == current.identity).one()
