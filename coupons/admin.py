from django.contrib import admin

from .models import GeneralCoupon, CouponUsage, CourseCoupon

admin.site.register(GeneralCoupon)
admin.site.register(CouponUsage)
admin.site.register(CourseCoupon)
