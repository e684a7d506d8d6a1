from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    path('admin/', admin.site.urls),

    # --- Accounts & Identity ---
    path('api/', include('users.urls')),

    # --- Student Mock Flow (before the mocks router) ---
    path('api/', include('assessments.urls')),

    # --- Catalogue ---
    path('api/', include('mocks.urls')),
    path('api/', include('courses.urls')),
    path('api/', include('mentorship.urls')),

    # --- Learner communication ---
    path('api/', include('community.urls')),

    # --- Commerce ---
    path('api/', include('payments.urls')),
    path('api/', include('coupons.urls')),

    # --- Platform ---
    path('api/', include('cores.urls')),
]
