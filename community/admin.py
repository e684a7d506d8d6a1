from django.contrib import admin

from .models import FAQ, CourseFeedback, FeedbackReply, CourseAnnouncement, AnnouncementRecipient

admin.site.register(FAQ)
admin.site.register(CourseFeedback)
admin.site.register(FeedbackReply)
admin.site.register(CourseAnnouncement)
admin.site.register(AnnouncementRecipient)
