from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend


class UsernameOrEmailBackend(ModelBackend):
    """Let marketplace users sign in with either their username or email."""

    def authenticate(self, request, username=None, password=None, **kwargs):
        if username is None:
            username = kwargs.get(get_user_model().USERNAME_FIELD)
        if username is None or password is None:
            return None

        usermodel = get_user_model()
        user = (
            usermodel.objects.filter(email__iexact=username).first()
            or usermodel.objects.filter(username__iexact=username).first()
        )
        if user is None:
            # Run the hasher anyway to keep timing similar for unknown accounts
            usermodel().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user

        return None
