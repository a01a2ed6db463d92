from django.contrib import admin
from django.urls import path, include
from rest_framework import permissions
from rest_framework_simplejwt import views as jwt_views
from drf_yasg.views import get_schema_view
from drf_yasg import openapi

schema_view = get_schema_view(
    openapi.Info(
        title="Settlement API",
        default_version='v1',
        description="Project lifecycle, bidding, contracts and escrow settlement",
    ),
    public=True,
    permission_classes=(permissions.AllowAny,),
)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('auth/token/', jwt_views.TokenObtainPairView.as_view(), name='token-obtain-pair'),
    path('auth/token/refresh/', jwt_views.TokenRefreshView.as_view(), name='token-refresh'),

    path('projects/', include('projects.urls')),
    path('bids/', include('bids.urls')),
    path('contracts/', include('contracts.urls')),
    path('escrow/', include('escrow.urls')),
    path('notifications/', include('notifications.urls')),

    # swagger/openapi routes
    path('swagger', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('redoc/', schema_view.with_ui('redoc', cache_timeout=0), name='schema-redoc'),
    path('openapi.json/', schema_view.without_ui(cache_timeout=0), name='schema-json'),
]
