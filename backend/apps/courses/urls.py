from django.urls import path, include
from rest_framework.routers import SimpleRouter

from .views import CourseViewSet, MyEnrollmentsView

router = SimpleRouter()
router.register(r'', CourseViewSet, basename='course')

urlpatterns = [
    path('my-enrollments/', MyEnrollmentsView.as_view(), name='my-enrollments'),
    path('', include(router.urls)),
]
