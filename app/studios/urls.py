"""
URL configuration for the class schedule API.

Mounted at /api/v1/studios/ by config.urls.
"""

from django.urls import path

from studios import views

app_name = "studios"

urlpatterns = [
    path("classes/", views.UpcomingClassListView.as_view(), name="class-list"),
]
