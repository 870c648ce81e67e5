from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.db import models
import uuid


class UserRole(models.TextChoices):
    BUDDYRUNNER = 'BuddyRunner', 'BuddyRunner'
    BUDDYCALLER = 'BuddyCaller', 'BuddyCaller'
    ADMIN = 'Admin', 'Admin'


def normalize_role(value):
    """Roles are stored as typed by clients; compare them trimmed and lower-cased."""
    return (value or '').strip().lower()


class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email is required')

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', UserRole.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')

        return self.create_user(email, password, **extra_fields)

    def buddyrunners(self):
        """
        Users whose role is BuddyRunner, ignoring case and surrounding whitespace.

        Role values written by older clients are not normalized, so an exact
        match would miss rows such as ' buddyrunner'.
        """
        runner_ids = [
            user_id
            for user_id, role in self.get_queryset().values_list('id', 'role')
            if normalize_role(role) == normalize_role(UserRole.BUDDYRUNNER)
        ]
        return self.get_queryset().filter(id__in=runner_ids)


class User(AbstractBaseUser, PermissionsMixin):
    """Campus marketplace account: BuddyRunners, BuddyCallers and admins."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, max_length=255, db_index=True)
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)
    student_id_number = models.CharField(max_length=50, blank=True)

    role = models.CharField(max_length=30, default=UserRole.BUDDYCALLER)

    # Account restrictions
    is_blocked = models.BooleanField(default=False)
    is_settlement_blocked = models.BooleanField(default=False)

    # Permissions
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    # Timestamps
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_login = models.DateTimeField(null=True, blank=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        db_table = 'users'
        indexes = [
            models.Index(fields=['email'], name='users_email_4b85f2_idx'),
            models.Index(fields=['role'], name='users_role_0ace22_idx'),
            models.Index(fields=['created_at'], name='users_created_6541e9_idx'),
        ]

    def __str__(self):
        return self.email

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def get_display_name(self):
        """Return full name or email prefix."""
        return self.full_name or self.email.split('@')[0]

    @property
    def is_buddyrunner(self):
        return normalize_role(self.role) == normalize_role(UserRole.BUDDYRUNNER)

    @property
    def is_admin_role(self):
        return normalize_role(self.role) == normalize_role(UserRole.ADMIN)
