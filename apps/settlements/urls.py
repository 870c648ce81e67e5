from django.urls import path, include
from rest_framework.routers import SimpleRouter
from . import views

app_name = 'settlements'

router = SimpleRouter()
router.register(r'', views.SettlementViewSet, basename='settlement')

urlpatterns = [
    # GET    /api/settlements/                - Reconcile and list settlements
    # POST   /api/settlements/mark_paid/      - Mark a settlement as paid
    # POST   /api/settlements/account_check/  - Lock/unlock runner accounts
    path('', include(router.urls)),
]
