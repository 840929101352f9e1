# shelter/users/urls.py
from django.urls import path
from .views import AnonymousSignInView

urlpatterns = [
    path("anonymous", AnonymousSignInView.as_view()),
    path("anonymous/", AnonymousSignInView.as_view()),
]
